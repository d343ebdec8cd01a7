"""
Revert engine.

Reverting a record re-applies the row state from before the change:

* UPDATE / DELETE: the row identified by the key in ``old_value`` is overwritten
  column by column with the snapshot, or re-created if it is gone.
* INSERT: the inserted row is deleted. A row that is already gone is a no-op,
  so reverting the same INSERT twice gives the same result both times.

Everything runs in one transaction. The compensating write goes through the
capture triggers like any other write, so it shows up as a new audit record.
Concurrent reverts of the same row are serialized by the store's row lock
(``SELECT ... FOR UPDATE``); there is no application-level locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.orm import Session

from rowaudit.core.errors import (
    ConflictError,
    NotFoundError,
    RowAuditError,
    ValidationError,
    translate_db_error,
)
from rowaudit.core.identifiers import split_table_name
from rowaudit.core.snapshot import bind_snapshot, coerce_value, load_snapshot
from rowaudit.models.audit_record import OPERATIONS, AuditRecord
from rowaudit.models.target_table import TargetTable
from rowaudit.services.records import get_record, get_registration

logger = logging.getLogger(__name__)

ACTION_UPDATED = "updated"
ACTION_RESTORED = "restored"
ACTION_DELETED = "deleted"
ACTION_NOOP = "noop"


@dataclass(frozen=True)
class RevertOutcome:
    record_id: int
    table_name: str
    operation: str
    action: str
    entity_id: str | None

    def message(self) -> str:
        if self.action == ACTION_NOOP:
            return (
                f"Change {self.record_id} reverted successfully "
                f"(row {self.entity_id} in {self.table_name} was already absent)"
            )
        return (
            f"Change {self.record_id} reverted successfully "
            f"({self.action} row {self.entity_id} in {self.table_name})"
        )


def reflect_table(connection: Connection, registration: TargetTable) -> Table:
    schema, name = split_table_name(registration.table_name)
    try:
        table = Table(name, MetaData(), schema=schema, autoload_with=connection)
    except NoSuchTableError as exc:
        raise NotFoundError(f"Table {registration.table_name!r} no longer exists") from exc
    if registration.key_column not in table.c:
        raise ConflictError(
            f"Table {registration.table_name!r} has no key column {registration.key_column!r}"
        )
    return table


def _restore_row(
    connection: Connection, table: Table, key_column: str, record: AuditRecord
) -> tuple[str, str]:
    snapshot = load_snapshot(record.old_value)
    if not snapshot:
        raise ConflictError(f"Audit record {record.id} has no prior row state to restore")
    if snapshot.get(key_column) is None:
        raise ConflictError(f"Prior row state of record {record.id} has no {key_column!r} value")

    values = bind_snapshot(table, snapshot)
    key = table.c[key_column]
    key_value = values[key_column]

    current = connection.execute(
        select(key).where(key == key_value).with_for_update()
    ).first()
    if current is not None:
        connection.execute(update(table).where(key == key_value).values(values))
        return ACTION_UPDATED, str(snapshot[key_column])
    connection.execute(insert(table).values(values))
    return ACTION_RESTORED, str(snapshot[key_column])


def _delete_inserted_row(
    connection: Connection, table: Table, key_column: str, record: AuditRecord
) -> tuple[str, str]:
    snapshot = load_snapshot(record.new_value) or {}
    raw_key = snapshot.get(key_column)
    if raw_key is None:
        raw_key = record.target_entity_id
    if raw_key is None:
        raise ConflictError(f"Audit record {record.id} does not identify the inserted row")

    key = table.c[key_column]
    result = connection.execute(delete(table).where(key == coerce_value(key, raw_key)))
    if result.rowcount:
        return ACTION_DELETED, str(raw_key)
    return ACTION_NOOP, str(raw_key)


def _apply_revert(db: Session, record_id: int) -> RevertOutcome:
    record = get_record(db, record_id)
    registration = get_registration(db, record.target_table_id)
    operation = (record.operation or "").upper()
    if operation not in OPERATIONS:
        raise ValidationError(f"Unsupported operation kind: {record.operation!r}")

    connection = db.connection()
    table = reflect_table(connection, registration)
    if operation == "INSERT":
        action, entity_id = _delete_inserted_row(
            connection, table, registration.key_column, record
        )
    else:
        action, entity_id = _restore_row(connection, table, registration.key_column, record)

    return RevertOutcome(
        record_id=record.id,
        table_name=registration.table_name,
        operation=operation,
        action=action,
        entity_id=entity_id,
    )


def revert_record(db: Session, record_id: int) -> RevertOutcome:
    """Revert one audit record atomically. On any error nothing is written."""
    try:
        outcome = _apply_revert(db, record_id)
        db.commit()
    except RowAuditError as exc:
        db.rollback()
        logger.warning("revert failed record=%s: %s", record_id, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("revert failed record=%s", record_id)
        raise translate_db_error(exc) from exc

    logger.info(
        "revert applied record=%s table=%s operation=%s action=%s entity=%s",
        outcome.record_id,
        outcome.table_name,
        outcome.operation,
        outcome.action,
        outcome.entity_id,
    )
    return outcome
