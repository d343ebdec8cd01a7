from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rowaudit.db.session import get_db
from rowaudit.schemas.audit_record import AuditRecordOut
from rowaudit.services.records import get_record, list_records, parse_record_id

router = APIRouter()


# limit/offset are taken as raw strings and validated by the service, so a
# malformed value is a 400 like every other validation error here.
@router.get("", response_model=list[AuditRecordOut])
def list_logs(
    db: Session = Depends(get_db),
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    table: str | None = Query(default=None),
    operation: str | None = Query(default=None),
) -> list[AuditRecordOut]:
    records = list_records(db, limit=limit, offset=offset, table=table, operation=operation)
    return [AuditRecordOut.model_validate(record) for record in records]


@router.get("/{record_id}", response_model=AuditRecordOut)
def get_log(record_id: str, db: Session = Depends(get_db)) -> AuditRecordOut:
    record = get_record(db, parse_record_id(record_id))
    return AuditRecordOut.model_validate(record)
