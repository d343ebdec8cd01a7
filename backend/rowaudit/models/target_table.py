from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, func, text
from sqlalchemy.orm import Mapped, mapped_column

from rowaudit.db.base import Base


class TargetTable(Base):
    """Allow-list entry mapping a surrogate id to a physical table name."""

    __tablename__ = "audit_target_tables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(127), unique=True, nullable=False)
    key_column: Mapped[str] = mapped_column(
        String(63), nullable=False, server_default="id", default="id"
    )
    # False once the table is dropped from configuration; history is kept.
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
