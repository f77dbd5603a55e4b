"""
Custody state machine: who may move a drug to which status, and the
transition itself.

    created -> distributed -> in_pharmacy -> sold
    any of the four -------------------------------> flagged (absorbing)

Two policies:
- strict (default, CUSTODY_STRICT_TRANSITIONS=true): the target must be
  reachable from the STORED status, and the write is a compare-and-set on
  that status. flagged is terminal.
- reference (strict=False): unconditional status write, last write wins
  (two racing scanners can overwrite each other). Role authorization still
  applies. A caller-supplied expected_status is still honoured.

Every successful transition writes exactly one ScanEvent in the same
commit as the status change. If the status write fails nothing is written.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.core.audit import AuditLog
from app.core.config import settings
from app.core.exceptions import ConflictError, InvalidTransition, PermissionDenied, ValidationError
from app.models.drug import Drug
from app.models.alert import Alert
from app.models.enums import DrugStatus, Role
from app.services import alert_service, scan_log_service
from app.services.drug_registry import get_drug
from app.services.explanation_service import ExplanationService, get_explanation_service

logger = logging.getLogger(__name__)

# target -> (legal source statuses, roles allowed to perform it)
TRANSITIONS: dict[DrugStatus, tuple[frozenset, frozenset]] = {
    DrugStatus.DISTRIBUTED: (
        frozenset({DrugStatus.CREATED}),
        frozenset({Role.DISTRIBUTOR}),
    ),
    DrugStatus.IN_PHARMACY: (
        frozenset({DrugStatus.DISTRIBUTED}),
        frozenset({Role.PHARMACY}),
    ),
    DrugStatus.SOLD: (
        frozenset({DrugStatus.IN_PHARMACY}),
        frozenset({Role.PHARMACY}),
    ),
    DrugStatus.FLAGGED: (
        frozenset({DrugStatus.CREATED, DrugStatus.DISTRIBUTED, DrugStatus.IN_PHARMACY, DrugStatus.SOLD}),
        frozenset({Role.PHARMACY, Role.ADMIN}),
    ),
}


def allowed_roles(target: DrugStatus) -> frozenset:
    """Roles that may move a drug into `target`. Empty for `created` (registration only)."""
    rule = TRANSITIONS.get(DrugStatus(target))
    return rule[1] if rule else frozenset()


def can_transition(current: DrugStatus, target: DrugStatus) -> bool:
    rule = TRANSITIONS.get(DrugStatus(target))
    return rule is not None and DrugStatus(current) in rule[0]


def next_statuses(current: DrugStatus, role: Optional[Role] = None) -> list[DrugStatus]:
    """Targets reachable from `current`, optionally limited to what `role` may do."""
    return [
        target for target, (sources, roles) in TRANSITIONS.items()
        if DrugStatus(current) in sources and (role is None or Role(role) in roles)
    ]


def check_transition(current: DrugStatus, target: DrugStatus, role: Role, strict: bool) -> None:
    """Raise if `role` may not move a drug from `current` to `target`."""
    target = DrugStatus(target)
    if target == DrugStatus.CREATED:
        raise ValidationError("status", "'created' is only set by registration")
    if role is None:
        raise PermissionDenied("Role assignment pending")
    if Role(role) not in allowed_roles(target):
        raise PermissionDenied(f"Role '{Role(role).value}' may not set status '{target.value}'")
    if strict and not can_transition(current, target):
        raise InvalidTransition(DrugStatus(current).value, target.value)


def check_expected_status(observed: DrugStatus, expected_status: Optional[DrugStatus]) -> None:
    """Raise ConflictError when the caller last saw a different status."""
    if expected_status is not None and DrugStatus(expected_status) != DrugStatus(observed):
        raise ConflictError(
            "Drug status changed since it was loaded. Reload and retry.",
            expected=DrugStatus(expected_status).value,
            actual=DrugStatus(observed).value,
        )


def advance_status(
    db: Session,
    drug_id: int,
    target: DrugStatus,
    role: Role,
    location: str = "",
    user_id: Optional[int] = None,
    expected_status: Optional[DrugStatus] = None,
    strict: Optional[bool] = None,
    explainer: Optional[ExplanationService] = None,
) -> Drug:
    """
    Move a drug to `target` and append the matching scan event.

    Order:
    1. Load the drug (DrugNotFound if absent) and check role/legality.
    2. Ask for an explanation (bounded timeout; templated text on failure).
       This happens before the write so no transaction is held open on the LLM.
    3. Compare-and-set the status, append one event, single commit.

    Raises:
        DrugNotFound, PermissionDenied, ValidationError,
        InvalidTransition (strict only), ConflictError (stale expected status)
    """
    strict = settings.CUSTODY_STRICT_TRANSITIONS if strict is None else strict
    target = DrugStatus(target)
    role = Role(role) if role is not None else None

    drug = get_drug(db, drug_id)
    observed = DrugStatus(drug.status)

    check_expected_status(observed, expected_status)
    check_transition(observed, target, role, strict)

    explainer = explainer or get_explanation_service()
    explanation = explainer.explain_transition(
        drug,
        target=target.value,
        role=role.value,
        events=scan_log_service.list_events(db, drug.id),
        alerts=alert_service.list_by_drug(db, drug.id),
    )

    # CAS guard: strict mode always, reference mode only when the caller asked
    guard = observed if (strict or expected_status is not None) else None
    query = db.query(Drug).filter(Drug.id == drug.id)
    if guard is not None:
        query = query.filter(Drug.status == guard.value)

    try:
        updated = query.update(
            {Drug.status: target.value, Drug.updated_at: func.now()},
            synchronize_session=False,
        )
        if updated == 0:
            raise ConflictError(
                "Drug status changed concurrently. Reload and retry.",
                expected=guard.value if guard else None,
            )
        scan_log_service.append_event(
            db,
            drug_id=drug.id,
            role=role,
            result=target.value,
            location=location or None,
            user_id=user_id,
            explanation=explanation,
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(drug)
    logger.info(f"Drug {drug.id} {observed.value} -> {target.value} by {role.value} (strict={strict})")
    AuditLog.log_action(
        "transition", "drug", drug.id, user_id=user_id, role=role.value,
        changes={"from": observed.value, "to": target.value},
    )
    return drug


def flag_drug(
    db: Session,
    drug_id: int,
    role: Role,
    alert_type: str,
    description: str,
    location: str = "",
    user_id: Optional[int] = None,
    expected_status: Optional[DrugStatus] = None,
    strict: Optional[bool] = None,
    explainer: Optional[ExplanationService] = None,
) -> tuple[Drug, Alert]:
    """
    The pharmacy/admin "report suspicious" action: record an alert, then
    move the drug to flagged.

    Every check advance_status makes up front runs here first, so a stale or
    illegal request writes no alert. The alert is then committed on its own;
    if the status write still loses a race the alert stays on record.
    """
    drug = get_drug(db, drug_id)
    check_expected_status(DrugStatus(drug.status), expected_status)
    check_transition(DrugStatus(drug.status), DrugStatus.FLAGGED, role,
                     settings.CUSTODY_STRICT_TRANSITIONS if strict is None else strict)
    alert = alert_service.create_alert(db, drug.id, alert_type, description, user_id=user_id)
    drug = advance_status(
        db, drug.id, DrugStatus.FLAGGED, role,
        location=location, user_id=user_id, expected_status=expected_status,
        strict=strict, explainer=explainer,
    )
    return drug, alert

