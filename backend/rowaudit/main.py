import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rowaudit.api.v1.api import api_router
from rowaudit.core.config import settings
from rowaudit.core.errors import register_exception_handlers
from rowaudit.core.logging import configure_logging
from rowaudit.db.session import engine
from rowaudit.services.capture import bootstrap_audit

configure_logging(settings.LOG_LEVEL, log_sql=settings.LOG_SQL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Setup errors propagate and abort startup.
    if settings.AUDIT_SETUP_ON_STARTUP:
        bootstrap_audit(engine, settings.AUDIT_TABLES, key_column=settings.AUDIT_KEY_COLUMN)
    else:
        logger.info("audit setup skipped (AUDIT_SETUP_ON_STARTUP=false)")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}
