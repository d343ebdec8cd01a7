from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rowaudit.core.config import settings
from rowaudit.core.snapshot import json_loads
from rowaudit.services.capture import SQLITE_ACTOR_FUNCTION


def build_engine(database_url: str, *, sqlite_actor: str | None = None) -> Engine:
    # snapshots keep NUMERIC precision when read back from JSON/JSONB
    engine_kwargs: dict = {"pool_pre_ping": True, "json_deserializer": json_loads}
    connect_args: dict = {}

    url = make_url(database_url)
    backend = url.get_backend_name()
    if backend in {"postgresql", "postgres"}:
        # psycopg2/libpq option flag
        connect_args["options"] = "-c client_encoding=UTF8"
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

    if backend == "sqlite":
        actor = sqlite_actor or settings.AUDIT_SQLITE_ACTOR

        @event.listens_for(engine, "connect")
        def _register_actor_function(dbapi_connection, connection_record):
            """The SQLite capture triggers call this to fill the actor column."""
            dbapi_connection.create_function(SQLITE_ACTOR_FUNCTION, 0, lambda: actor)

    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
