from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer


def wire_field(name: str, alias: str, **kwargs):
    """Attribute ``name`` on the model, ``alias`` on the wire; both accepted on input."""
    return Field(
        validation_alias=AliasChoices(name, alias),
        serialization_alias=alias,
        **kwargs,
    )


def _json_number(value: Any) -> Any:
    # snapshots are read with Decimal numbers; the viewer expects plain JSON numbers
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _json_number(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_json_number(item) for item in value]
    return value


class AuditRecordOut(BaseModel):
    """Wire shape read by the audit log viewer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    target_table_id: int = wire_field("target_table_id", "targetTableId")
    table_name: Optional[str] = wire_field("table_name", "tableName", default=None)
    target_entity_id: Optional[str] = wire_field("target_entity_id", "targetEntityId", default=None)
    actor: Optional[str] = wire_field("actor", "username", default=None)
    old_value: Optional[dict[str, Any]] = wire_field("old_value", "oldValue", default=None)
    new_value: Optional[dict[str, Any]] = wire_field("new_value", "newValue", default=None)
    operation: str
    occurred_at: datetime = wire_field("occurred_at", "timestamp")

    @field_serializer("old_value", "new_value")
    def _serialize_snapshot(self, snapshot: Optional[dict[str, Any]]):
        return _json_number(snapshot)
