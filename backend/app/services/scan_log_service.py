"""Scan events: append and read. Events are never updated or deleted individually."""
from typing import Optional

from sqlalchemy.orm import Session

from app.models.enums import Role
from app.models.scan_event import ScanEvent


def append_event(
    db: Session,
    drug_id: int,
    role: Role | str,
    result: str,
    location: Optional[str] = None,
    user_id: Optional[int] = None,
    explanation: Optional[str] = None,
    commit: bool = True,
) -> ScanEvent:
    """Append one event. With commit=False the caller owns the transaction."""
    event = ScanEvent(
        drug_id=drug_id,
        role=Role(role).value,
        user_id=user_id,
        location=location,
        result=result,
        explanation=explanation,
    )
    db.add(event)
    if commit:
        db.commit()
        db.refresh(event)
    else:
        db.flush()
    return event


def list_events(db: Session, drug_id: int) -> list[ScanEvent]:
    """Oldest first; insertion order breaks timestamp ties."""
    return (
        db.query(ScanEvent)
        .filter(ScanEvent.drug_id == drug_id)
        .order_by(ScanEvent.scanned_at.asc(), ScanEvent.id.asc())
        .all()
    )


def list_recent(db: Session, limit: int = 100) -> list[ScanEvent]:
    return (
        db.query(ScanEvent)
        .order_by(ScanEvent.scanned_at.desc(), ScanEvent.id.desc())
        .limit(limit)
        .all()
    )


def count_by_result(db: Session, drug_id: int, result: str) -> int:
    return db.query(ScanEvent).filter(ScanEvent.drug_id == drug_id, ScanEvent.result == result).count()
