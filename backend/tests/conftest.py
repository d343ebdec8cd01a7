import os
import sys

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("AUDIT_TABLES", "widgets")
os.environ.setdefault("AUDIT_SQLITE_ACTOR", "tester")

import rowaudit.models  # noqa: E402,F401
from rowaudit.db.session import SessionLocal, engine  # noqa: E402
from rowaudit.services.capture import setup_database  # noqa: E402

from rowaudit.main import app  # noqa: E402
from support import drop_everything, target_metadata  # noqa: E402


@pytest.fixture()
def client():
    target_metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    drop_everything()


@pytest.fixture()
def registration():
    """widgets and gadgets audited, without going through the HTTP app."""
    target_metadata.create_all(bind=engine)
    registrations = setup_database(engine, ["widgets", "gadgets"])
    yield registrations[0]
    drop_everything()


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
