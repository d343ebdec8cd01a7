"""
Row snapshots.

A snapshot is the schema-less JSON object the capture triggers store for a row:
column name -> scalar value, in table column order. Before a snapshot is written
back, its keys are checked against the reflected table and each value is
converted to the Python type of its column, so every value reaches the database
as a bound parameter of the right type.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from functools import partial
from typing import Any

from sqlalchemy import Column, Table

from rowaudit.core.errors import ConflictError

RowSnapshot = dict[str, Any]

# JSON numbers are read as Decimal so NUMERIC values survive a round trip exactly.
json_loads = partial(json.loads, parse_float=Decimal)

_TRUE_STRINGS = {"t", "true", "1", "y", "yes", "on"}
_FALSE_STRINGS = {"f", "false", "0", "n", "no", "off"}


def load_snapshot(raw: Any) -> RowSnapshot | None:
    """Normalize a stored snapshot to a plain dict (None stays None)."""
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        try:
            raw = json_loads(raw)
        except ValueError as exc:
            raise ConflictError("Stored row snapshot is not valid JSON") from exc
    if not isinstance(raw, Mapping):
        raise ConflictError("Stored row snapshot is not a JSON object")
    return {str(key): value for key, value in raw.items()}


def _to_bool(value: Any) -> bool:
    if isinstance(value, (int, float, Decimal)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_bytes(value: Any) -> bytes:
    # to_jsonb renders bytea as "\x0a0b..."
    if isinstance(value, str) and value.startswith("\\x"):
        return bytes.fromhex(value[2:])
    if isinstance(value, str):
        return value.encode("utf-8")
    raise ValueError(f"not binary data: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, (float, Decimal)) and value != int(value):
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


_CONVERTERS = {
    bool: _to_bool,
    int: _to_int,
    float: float,
    Decimal: lambda value: Decimal(str(value)),
    datetime: lambda value: datetime.fromisoformat(value),
    date: lambda value: date.fromisoformat(value[:10]),
    time: lambda value: time.fromisoformat(value),
    uuid.UUID: lambda value: uuid.UUID(str(value)),
    bytes: _to_bytes,
    str: str,
}


def coerce_value(column: Column, value: Any) -> Any:
    """Convert a JSON scalar to the Python type the column's SQL type expects."""
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type in (dict, list):
        return value
    if isinstance(value, python_type) and not (python_type is int and isinstance(value, bool)):
        return value
    converter = _CONVERTERS.get(python_type)
    if converter is None:
        return value
    try:
        return converter(value)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ConflictError(
            f"Value for column {column.name!r} cannot be restored as {python_type.__name__}"
        ) from exc


def bind_snapshot(table: Table, snapshot: RowSnapshot) -> RowSnapshot:
    """
    Check a snapshot against the table's current columns and coerce its values.
    Column names come from the reflected table, never from the snapshot alone.
    """
    unknown = [name for name in snapshot if name not in table.c]
    if unknown:
        raise ConflictError(
            f"Table {table.fullname!r} no longer has column(s): {', '.join(sorted(unknown))}"
        )
    return {name: coerce_value(table.c[name], value) for name, value in snapshot.items()}
