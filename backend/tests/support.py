from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    func,
    select,
)

from rowaudit.db.base import Base
from rowaudit.db.session import SessionLocal, engine
from rowaudit.models.audit_record import AuditRecord

# Application tables the audit layer is pointed at.
target_metadata = MetaData()

widgets = Table(
    "widgets",
    target_metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(64), nullable=False),
    Column("qty", Integer, nullable=True),
    Column("active", Boolean, nullable=True),
    Column("updated_at", DateTime, nullable=True),
)

gadgets = Table(
    "gadgets",
    target_metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("label", String(64), nullable=True),
)

files = Table(
    "files",
    target_metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("data", LargeBinary, nullable=True),
)


def drop_everything() -> None:
    target_metadata.drop_all(bind=engine)
    Base.metadata.drop_all(bind=engine)


def write(*statements) -> None:
    """Run statements in one committed transaction, as an application would."""
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(statement)


def fetch_widget(widget_id: int):
    with engine.connect() as conn:
        row = conn.execute(select(widgets).where(widgets.c.id == widget_id)).mappings().first()
    return dict(row) if row else None


def fetch_file_data(file_id: int):
    with engine.connect() as conn:
        return conn.execute(select(files.c.data).where(files.c.id == file_id)).scalar_one()


def widget_count() -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(widgets)).scalar_one()


def audit_rows() -> list[AuditRecord]:
    session = SessionLocal()
    try:
        return session.query(AuditRecord).order_by(AuditRecord.id).all()
    finally:
        session.close()


def audit_count() -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(AuditRecord.__table__)).scalar_one()
