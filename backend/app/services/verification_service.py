"""
Public verification lookup.

Read path with one write side effect: every lookup of a known code appends
a consumer event, including repeated lookups of the same code. There is no
dedup window; N scans produce N events.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from app.models.alert import Alert
from app.models.drug import Drug
from app.models.enums import DrugStatus, Role, ScanResult
from app.models.scan_event import ScanEvent
from app.services import alert_service, scan_log_service
from app.services.drug_registry import find_by_code

logger = logging.getLogger(__name__)

CONSUMER_LOCATION = "Consumer Verification"


@dataclass
class VerificationResult:
    drug: Optional[Drug] = None
    events: list[ScanEvent] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    is_authentic: bool = False


def is_authentic(drug: Optional[Drug]) -> bool:
    return drug is not None and drug.status != DrugStatus.FLAGGED.value


def verify_code(db: Session, verification_code: str) -> VerificationResult:
    """
    Resolve a scanned code. Unknown codes return an empty result (never raise):
    the caller presents that as a possible counterfeit.

    The returned events include the consumer event written by this lookup.
    """
    drug = find_by_code(db, (verification_code or "").strip())
    if drug is None:
        logger.warning(f"Verification of unknown code {verification_code!r}")
        return VerificationResult()

    events = scan_log_service.list_events(db, drug.id)
    alerts = alert_service.list_by_drug(db, drug.id)
    authentic = is_authentic(drug)

    consumer_event = scan_log_service.append_event(
        db,
        drug_id=drug.id,
        role=Role.CONSUMER,
        result=ScanResult.VERIFIED.value if authentic else ScanResult.FLAGGED.value,
        location=CONSUMER_LOCATION,
        user_id=None,
    )
    logger.info(f"Consumer verification of drug {drug.id}: authentic={authentic}")
    return VerificationResult(drug=drug, events=events + [consumer_event], alerts=alerts, is_authentic=authentic)
