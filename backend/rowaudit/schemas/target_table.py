from datetime import datetime

from pydantic import BaseModel, ConfigDict

from rowaudit.schemas.audit_record import wire_field


class TargetTableOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    table_name: str = wire_field("table_name", "tableName")
    key_column: str = wire_field("key_column", "keyColumn")
    is_active: bool = wire_field("is_active", "isActive")
    created_at: datetime = wire_field("created_at", "createdAt")
