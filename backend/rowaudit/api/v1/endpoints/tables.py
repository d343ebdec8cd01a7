from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rowaudit.db.session import get_db
from rowaudit.schemas.target_table import TargetTableOut
from rowaudit.services.records import list_registrations

router = APIRouter()


@router.get("", response_model=list[TargetTableOut])
def list_tables(
    db: Session = Depends(get_db),
    include_inactive: bool = Query(default=True),
) -> list[TargetTableOut]:
    registrations = list_registrations(db, include_inactive=include_inactive)
    return [TargetTableOut.model_validate(registration) for registration in registrations]
