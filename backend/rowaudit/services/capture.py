"""
Capture mechanism: database triggers that copy every row change of an audited
table into ``audit_records`` inside the writing transaction.

PostgreSQL gets one shared PL/pgSQL function and one row trigger per table; the
registration id and key column travel as trigger arguments. SQLite has no
generic row-to-JSON, so each table gets three triggers built from its reflected
column list.

``setup_database`` is the explicit, idempotent setup routine. It is meant to be
run once by the bootstrap (app lifespan or ``rowaudit setup``), never from a
request handler.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from rowaudit.core.errors import ConfigError, DatabaseUnavailableError
from rowaudit.core.identifiers import is_identifier, split_table_name
from rowaudit.db.base import Base
from rowaudit.models.audit_record import AuditRecord
from rowaudit.models.target_table import TargetTable

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = ("postgresql", "sqlite")

CAPTURE_FUNCTION = "rowaudit_capture"
CAPTURE_TRIGGER = "rowaudit_capture_trg"
SQLITE_ACTOR_FUNCTION = "rowaudit_actor"

_AUDIT_TABLES = (TargetTable.__table__, AuditRecord.__table__)
_RESERVED_TABLES = {table.name for table in _AUDIT_TABLES}

_SQLITE_EVENTS = {
    "ins": ("INSERT", None, "NEW"),
    "upd": ("UPDATE", "OLD", "NEW"),
    "del": ("DELETE", "OLD", None),
}


def _postgresql_function_ddl() -> str:
    audit = AuditRecord.__tablename__
    return f"""
CREATE OR REPLACE FUNCTION {CAPTURE_FUNCTION}() RETURNS trigger
LANGUAGE plpgsql
SET search_path FROM CURRENT
AS $body$
DECLARE
    old_row jsonb;
    new_row jsonb;
BEGIN
    IF TG_OP IN ('UPDATE', 'DELETE') THEN
        old_row := to_jsonb(OLD);
    END IF;
    IF TG_OP IN ('INSERT', 'UPDATE') THEN
        new_row := to_jsonb(NEW);
    END IF;
    INSERT INTO {audit}
        (target_table_id, target_entity_id, actor, old_value, new_value, operation, occurred_at)
    VALUES (
        TG_ARGV[0]::integer,
        COALESCE(old_row, new_row) ->> TG_ARGV[1],
        session_user,
        old_row,
        new_row,
        TG_OP,
        clock_timestamp()
    );
    RETURN NULL;
END;
$body$
"""


def _quoted_table(connection: Connection, table_name: str) -> str:
    schema, name = split_table_name(table_name)
    preparer = connection.dialect.identifier_preparer
    if schema:
        return f"{preparer.quote_schema(schema)}.{preparer.quote(name)}"
    return preparer.quote(name)


def _sqlite_trigger_name(table_name: str, suffix: str) -> str:
    return f"rowaudit_{table_name}_{suffix}"


def _sqlite_json_value(expression: str) -> str:
    # json_object rejects BLOBs; store them hex encoded the way to_jsonb renders bytea
    return (
        f"CASE WHEN typeof({expression}) = 'blob' "
        f"THEN '\\x' || lower(hex({expression})) ELSE {expression} END"
    )


def _sqlite_json_object(connection: Connection, alias: str | None, columns: list[str]) -> str:
    if alias is None:
        return "NULL"
    preparer = connection.dialect.identifier_preparer
    pairs = ", ".join(
        f"'{column}', {_sqlite_json_value(f'{alias}.{preparer.quote(column)}')}"
        for column in columns
    )
    return f"json_object({pairs})"


def _install_postgresql(connection: Connection, registration: TargetTable) -> None:
    target = _quoted_table(connection, registration.table_name)
    connection.exec_driver_sql(f"DROP TRIGGER IF EXISTS {CAPTURE_TRIGGER} ON {target}")
    connection.exec_driver_sql(
        f"CREATE TRIGGER {CAPTURE_TRIGGER} "
        f"AFTER INSERT OR UPDATE OR DELETE ON {target} "
        f"FOR EACH ROW EXECUTE FUNCTION {CAPTURE_FUNCTION}"
        f"('{int(registration.id)}', '{registration.key_column}')"
    )


def _install_sqlite(
    connection: Connection, registration: TargetTable, columns: list[str]
) -> None:
    preparer = connection.dialect.identifier_preparer
    target = preparer.quote(registration.table_name)
    key = preparer.quote(registration.key_column)
    audit = AuditRecord.__tablename__
    for suffix, (operation, old_alias, new_alias) in _SQLITE_EVENTS.items():
        trigger = _sqlite_trigger_name(registration.table_name, suffix)
        connection.exec_driver_sql(f"DROP TRIGGER IF EXISTS {trigger}")
        connection.exec_driver_sql(
            f"CREATE TRIGGER {trigger} AFTER {operation} ON {target} FOR EACH ROW\n"
            f"BEGIN\n"
            f"    INSERT INTO {audit}\n"
            f"        (target_table_id, target_entity_id, actor, old_value, new_value,"
            f" operation, occurred_at)\n"
            f"    VALUES (\n"
            f"        {int(registration.id)},\n"
            f"        CAST({old_alias or new_alias}.{key} AS TEXT),\n"
            f"        {SQLITE_ACTOR_FUNCTION}(),\n"
            f"        {_sqlite_json_object(connection, old_alias, columns)},\n"
            f"        {_sqlite_json_object(connection, new_alias, columns)},\n"
            f"        '{operation}',\n"
            f"        strftime('%Y-%m-%d %H:%M:%f', 'now')\n"
            f"    );\n"
            f"END"
        )


def install_capture(
    connection: Connection, registration: TargetTable, columns: list[str]
) -> None:
    """(Re)install the capture trigger(s) of one registered table."""
    dialect = connection.dialect.name
    if dialect == "postgresql":
        _install_postgresql(connection, registration)
    elif dialect == "sqlite":
        _install_sqlite(connection, registration, columns)
    else:
        raise ConfigError(f"Unsupported database dialect: {dialect}")
    logger.info(
        "capture installed table=%s ref=%s key=%s",
        registration.table_name,
        registration.id,
        registration.key_column,
    )


def remove_capture(connection: Connection, table_name: str) -> None:
    """Drop the capture trigger(s) of one table. Safe to call repeatedly."""
    dialect = connection.dialect.name
    if dialect == "postgresql":
        target = _quoted_table(connection, table_name)
        connection.exec_driver_sql(f"DROP TRIGGER IF EXISTS {CAPTURE_TRIGGER} ON {target}")
    elif dialect == "sqlite":
        split_table_name(table_name)
        for suffix in _SQLITE_EVENTS:
            connection.exec_driver_sql(
                f"DROP TRIGGER IF EXISTS {_sqlite_trigger_name(table_name, suffix)}"
            )
    else:
        raise ConfigError(f"Unsupported database dialect: {dialect}")
    logger.info("capture removed table=%s", table_name)


def _target_columns(connection: Connection, table_name: str, key_column: str) -> list[str]:
    try:
        schema, name = split_table_name(table_name)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    if name in _RESERVED_TABLES:
        raise ConfigError(f"Audit table {name!r} cannot itself be audited")
    if schema and connection.dialect.name == "sqlite":
        raise ConfigError(f"Schema-qualified tables are not supported on SQLite: {table_name!r}")

    inspector = inspect(connection)
    if not inspector.has_table(name, schema=schema):
        raise ConfigError(f"Table {table_name!r} does not exist")
    columns = [column["name"] for column in inspector.get_columns(name, schema=schema)]
    if key_column not in columns:
        raise ConfigError(f"Table {table_name!r} has no key column {key_column!r}")
    invalid = [column for column in columns if not is_identifier(column)]
    if invalid:
        raise ConfigError(
            f"Table {table_name!r} has column names that cannot be audited: {invalid}"
        )
    return columns


def _register(db: Session, table_name: str, key_column: str) -> TargetTable:
    registration = (
        db.query(TargetTable).filter(TargetTable.table_name == table_name).first()
    )
    if registration:
        registration.key_column = key_column
        registration.is_active = True
    else:
        registration = TargetTable(table_name=table_name, key_column=key_column)
        db.add(registration)
    db.flush()  # registration.id is embedded in the trigger
    return registration


def setup_database(
    engine: Engine, tables: Iterable[str], *, key_column: str = "id"
) -> list[TargetTable]:
    """
    Create the audit store, register the configured tables and install capture
    on each of them. Registrations for tables no longer configured are kept but
    deactivated, and their triggers dropped.
    """
    names = list(dict.fromkeys(tables))
    if engine.dialect.name not in SUPPORTED_DIALECTS:
        raise ConfigError(f"Unsupported database dialect: {engine.dialect.name}")
    if not is_identifier(key_column):
        raise ConfigError(f"Invalid key column name: {key_column!r}")

    Base.metadata.create_all(bind=engine, tables=list(_AUDIT_TABLES))

    with Session(engine, expire_on_commit=False) as db:
        with db.begin():
            connection = db.connection()
            if connection.dialect.name == "postgresql":
                connection.exec_driver_sql(_postgresql_function_ddl())

            registrations = []
            for table_name in names:
                columns = _target_columns(connection, table_name, key_column)
                registration = _register(db, table_name, key_column)
                install_capture(connection, registration, columns)
                registrations.append(registration)

            stale = db.query(TargetTable).filter(TargetTable.is_active.is_(True))
            if names:
                stale = stale.filter(TargetTable.table_name.notin_(names))
            inspector = inspect(connection)
            for registration in stale.all():
                schema, name = split_table_name(registration.table_name)
                if inspector.has_table(name, schema=schema):
                    remove_capture(connection, registration.table_name)
                registration.is_active = False
                logger.info("table deregistered table=%s", registration.table_name)

    logger.info("audit setup complete tables=%s", ",".join(names) or "-")
    return registrations


def bootstrap_audit(engine: Engine, tables: Iterable[str], *, key_column: str = "id"):
    """setup_database with database failures reported as fatal startup errors."""
    try:
        with engine.connect():
            pass
    except OperationalError as exc:
        raise DatabaseUnavailableError(f"Cannot reach the database: {exc.orig}") from exc
    try:
        return setup_database(engine, tables, key_column=key_column)
    except DBAPIError as exc:
        raise ConfigError(f"Audit setup failed: {exc.orig}") from exc
