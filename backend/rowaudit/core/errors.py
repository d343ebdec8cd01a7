"""
Error taxonomy for rowaudit and its mapping onto HTTP responses.

Every error carries a status code and a short machine-readable code. Handlers
registered on the FastAPI app turn them into ``{"detail": ..., "code": ...}``
bodies at the request boundary.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError

logger = logging.getLogger(__name__)


class RowAuditError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(RowAuditError):
    """Invalid configuration. Fatal at startup."""

    code = "config_error"


class DatabaseUnavailableError(RowAuditError):
    """The database cannot be reached."""

    status_code = 503
    code = "database_unavailable"


class NotFoundError(RowAuditError):
    status_code = 404
    code = "not_found"


class ValidationError(RowAuditError):
    status_code = 400
    code = "validation_error"


class StoreError(RowAuditError):
    code = "store_error"


class ConflictError(RowAuditError):
    """The target row or table is not in a state a revert can be applied to."""

    status_code = 409
    code = "conflict"


def translate_db_error(exc: SQLAlchemyError) -> RowAuditError:
    if isinstance(exc, DisconnectionError) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return DatabaseUnavailableError(f"Database unavailable: {exc.__class__.__name__}")
    detail = getattr(exc, "orig", None) or exc
    return StoreError(f"Database error: {detail}")


async def rowaudit_error_handler(request: Request, exc: RowAuditError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    return await rowaudit_error_handler(request, translate_db_error(exc))


def register_exception_handlers(app) -> None:
    app.add_exception_handler(RowAuditError, rowaudit_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
