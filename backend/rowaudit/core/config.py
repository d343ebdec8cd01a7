import os
from typing import Annotated, List

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from rowaudit.core.errors import ConfigError
from rowaudit.core.identifiers import is_identifier, split_table_name


def _build_default_database_url() -> str:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "rowaudit")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}"


def _split_csv(value):
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    PROJECT_NAME: str = "rowaudit API"
    API_PREFIX: str = "/api"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    LOG_SQL: bool = False
    PORT: int = Field(default=8080, ge=1, le=65535)

    DATABASE_URL: str = Field(default_factory=_build_default_database_url)

    # Tables instrumented by the capture triggers, e.g. "users,public.orders".
    AUDIT_TABLES: Annotated[List[str], NoDecode] = Field(default_factory=list)
    AUDIT_KEY_COLUMN: str = "id"
    AUDIT_SETUP_ON_STARTUP: bool = True
    # SQLite has no session user; the capture triggers record this name instead.
    AUDIT_SQLITE_ACTOR: str = "rowaudit"
    AUDIT_MAX_PAGE_SIZE: int = Field(default=1000, ge=1)

    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def _validate_database_url(cls, value, info):
        env = str(info.data.get("ENV", "dev")).lower()
        if env != "dev" and value.startswith("sqlite"):
            raise ValueError("DATABASE_URL must point to PostgreSQL in non-dev environments")
        return value

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_cors_origins(cls, value):
        return _split_csv(value)

    @field_validator("AUDIT_TABLES", mode="before")
    @classmethod
    def _split_audit_tables(cls, value):
        return _split_csv(value)

    @field_validator("AUDIT_TABLES")
    @classmethod
    def _validate_audit_tables(cls, value):
        for name in value:
            split_table_name(name)
        # keep the configured order, drop repeats
        return list(dict.fromkeys(value))

    @field_validator("AUDIT_KEY_COLUMN")
    @classmethod
    def _validate_key_column(cls, value):
        if not is_identifier(value):
            raise ValueError(f"Invalid key column name: {value!r}")
        return value


def load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


settings = load_settings()
