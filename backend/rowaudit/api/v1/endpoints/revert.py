from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from rowaudit.db.session import get_db
from rowaudit.services.records import parse_record_id
from rowaudit.services.revert import revert_record

router = APIRouter()


@router.post("/{record_id}", response_class=PlainTextResponse)
def revert_change(record_id: str, db: Session = Depends(get_db)) -> str:
    outcome = revert_record(db, parse_record_id(record_id))
    return outcome.message()
