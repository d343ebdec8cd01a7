from __future__ import annotations

import re
from typing import Any

from sqlalchemy.orm import Session

from rowaudit.core.config import settings
from rowaudit.core.errors import NotFoundError, ValidationError
from rowaudit.models.audit_record import OPERATIONS, AuditRecord
from rowaudit.models.target_table import TargetTable

_INTEGER = re.compile(r"^-?[0-9]+$")
# audit_records.id is a 32-bit integer column
MAX_RECORD_ID = 2**31 - 1


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not _INTEGER.match(text):
        raise ValidationError(f"{name} must be an integer")
    return int(text)


def parse_record_id(value: Any) -> int:
    record_id = _parse_int("Audit record id", value)
    if not 1 <= record_id <= MAX_RECORD_ID:
        raise ValidationError(f"Audit record id must be between 1 and {MAX_RECORD_ID}")
    return record_id


def parse_page_param(
    name: str, value: Any, *, minimum: int, maximum: int | None = None
) -> int | None:
    """Validate an optional pagination bound. Empty values mean "not given"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = _parse_int(name, value)
    if number < minimum or (maximum is not None and number > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ValidationError(f"{name} must be {bounds}")
    return number


def list_records(
    db: Session,
    *,
    limit: Any = None,
    offset: Any = None,
    table: str | None = None,
    operation: str | None = None,
) -> list[AuditRecord]:
    """Audit records, most recent first."""
    limit = parse_page_param("limit", limit, minimum=1, maximum=settings.AUDIT_MAX_PAGE_SIZE)
    offset = parse_page_param("offset", offset, minimum=0)

    query = db.query(AuditRecord)
    if table:
        query = query.join(AuditRecord.target_table).filter(TargetTable.table_name == table)
    if operation:
        kind = operation.strip().upper()
        if kind not in OPERATIONS:
            raise ValidationError(f"Unsupported operation kind: {operation}")
        query = query.filter(AuditRecord.operation == kind)

    query = query.order_by(AuditRecord.occurred_at.desc(), AuditRecord.id.desc())
    if offset is not None:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_record(db: Session, record_id: int) -> AuditRecord:
    record = db.get(AuditRecord, record_id)
    if record is None:
        raise NotFoundError(f"Audit record {record_id} not found")
    return record


def get_registration(db: Session, table_ref: int) -> TargetTable:
    """Resolve a table reference against the active allow-list."""
    registration = db.get(TargetTable, table_ref)
    if registration is None or not registration.is_active:
        raise NotFoundError(f"Table reference {table_ref} is not registered for auditing")
    return registration


def list_registrations(db: Session, *, include_inactive: bool = True) -> list[TargetTable]:
    query = db.query(TargetTable)
    if not include_inactive:
        query = query.filter(TargetTable.is_active.is_(True))
    return query.order_by(TargetTable.id).all()
