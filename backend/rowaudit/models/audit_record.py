from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rowaudit.db.base import Base
from rowaudit.models.target_table import TargetTable

OPERATIONS = ("INSERT", "UPDATE", "DELETE")

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite in-memory)
RowSnapshotType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class AuditRecord(Base):
    """
    One captured row change. Rows are written only by the capture triggers
    and are never updated afterwards.
    """

    __tablename__ = "audit_records"

    __table_args__ = (
        Index("ix_audit_records_occurred_at_id", "occurred_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_table_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("audit_target_tables.id"), nullable=False, index=True
    )
    target_entity_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor: Mapped[str | None] = mapped_column(Text, nullable=True)
    old_value: Mapped[dict | None] = mapped_column(RowSnapshotType, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(RowSnapshotType, nullable=True)
    operation: Mapped[str] = mapped_column(String(8), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    target_table: Mapped[TargetTable] = relationship(TargetTable, lazy="joined")

    @property
    def table_name(self) -> str | None:
        return self.target_table.table_name if self.target_table else None
