from rowaudit.db.base import Base
from rowaudit.models.audit_record import OPERATIONS, AuditRecord
from rowaudit.models.target_table import TargetTable

__all__ = [
    "Base",
    "AuditRecord",
    "OPERATIONS",
    "TargetTable",
]
