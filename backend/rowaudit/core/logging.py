import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _console(level: str) -> dict:
    return {"level": level, "handlers": ["console"], "propagate": False}


def configure_logging(level: str = "INFO", *, log_sql: bool = False) -> None:
    """
    Route rowaudit, uvicorn and SQLAlchemy logs to one console handler.
    ``log_sql`` echoes every statement, including the generated trigger DDL
    and revert statements.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                "sqlalchemy.engine": {"level": "INFO" if log_sql else "WARNING"},
                "uvicorn": _console(level),
                "uvicorn.error": _console(level),
                "uvicorn.access": _console(level),
            },
        }
    )
