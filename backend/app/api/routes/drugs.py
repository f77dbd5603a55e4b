"""
Drugs: registration, listing, custody transitions, flagging, labels.
Trust: role checks here, transition rules in custody_service.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.core.audit import AuditLog
from app.core.exceptions import BusinessError, MediTrackError, PermissionDenied, to_http_exception
from app.core.permissions import SUPPLY_CHAIN_ROLES, resolve_role, user_can_manage_drug
from app.models.enums import DrugStatus, Role
from app.models.user import User
from app.schemas.alert import AlertRecord
from app.schemas.drug import DrugCreate, DrugResponse, FlagRequest, StatusUpdate
from app.schemas.scan_event import ScanEventRecord
from app.services import alert_service, custody_service, drug_registry, scan_log_service
from app.services.label_service import generate_label_pdf

logger = logging.getLogger(__name__)
router = APIRouter()

supply_chain_user = require_roles(*SUPPLY_CHAIN_ROLES)


@router.post("", response_model=DrugResponse, status_code=201)
def register_drug(data: DrugCreate, db: Session = Depends(get_db),
                  current_user: User = Depends(require_roles(Role.MANUFACTURER))):
    """Manufacturer registers a batch. Response carries the verification code and QR payload."""
    try:
        return drug_registry.register_drug(db, data.name, data.batch_number, data.expiry_date, current_user.id)
    except MediTrackError as e:
        raise to_http_exception(e)


@router.get("/mine", response_model=list[DrugResponse])
def list_my_drugs(db: Session = Depends(get_db),
                  current_user: User = Depends(require_roles(Role.MANUFACTURER))):
    """Newest first."""
    return drug_registry.list_by_manufacturer(db, current_user.id)


@router.get("", response_model=list[DrugResponse])
def list_drugs(status: Optional[DrugStatus] = None, db: Session = Depends(get_db),
               current_user: User = Depends(supply_chain_user)):
    """Global listing, newest first. Dashboards filter by status (e.g. distributed for pharmacies)."""
    return drug_registry.list_all(db, status=status)


@router.get("/by-code/{code}", response_model=DrugResponse)
def get_drug_by_code(code: str, db: Session = Depends(get_db), current_user: User = Depends(supply_chain_user)):
    """Resolve a scanned code for a supply-chain dashboard. Writes no event."""
    drug = drug_registry.find_by_code(db, code)
    if not drug:
        raise BusinessError.not_found("Drug", reason=f"unknown code {code!r} scanned by user {current_user.id}")
    return drug


@router.get("/{drug_id}", response_model=DrugResponse)
def get_drug(drug_id: int, db: Session = Depends(get_db), current_user: User = Depends(supply_chain_user)):
    try:
        return drug_registry.get_drug(db, drug_id)
    except MediTrackError as e:
        raise to_http_exception(e)


@router.get("/{drug_id}/events", response_model=list[ScanEventRecord])
def list_drug_events(drug_id: int, db: Session = Depends(get_db), current_user: User = Depends(supply_chain_user)):
    """Oldest first."""
    try:
        drug_registry.get_drug(db, drug_id)
    except MediTrackError as e:
        raise to_http_exception(e)
    return scan_log_service.list_events(db, drug_id)


@router.get("/{drug_id}/alerts", response_model=list[AlertRecord])
def list_drug_alerts(drug_id: int, db: Session = Depends(get_db), current_user: User = Depends(supply_chain_user)):
    try:
        drug_registry.get_drug(db, drug_id)
    except MediTrackError as e:
        raise to_http_exception(e)
    return alert_service.list_by_drug(db, drug_id)


@router.post("/{drug_id}/status", response_model=DrugResponse)
def update_status(drug_id: int, data: StatusUpdate, db: Session = Depends(get_db),
                  current_user: User = Depends(require_roles(Role.DISTRIBUTOR, Role.PHARMACY, Role.ADMIN))):
    """
    Custody transfer. 409 when the drug moved since the caller loaded it (or
    the move is illegal from the stored status): reload and retry.
    """
    role = resolve_role(current_user)
    try:
        return custody_service.advance_status(
            db, drug_id, data.status, role,
            location=data.location, user_id=current_user.id, expected_status=data.expected_status,
        )
    except PermissionDenied as e:
        AuditLog.log_access_denied("transition", "drug", drug_id, current_user.id, e.message)
        raise to_http_exception(e)
    except MediTrackError as e:
        raise to_http_exception(e)


@router.post("/{drug_id}/flag", response_model=DrugResponse)
def flag_drug(drug_id: int, data: FlagRequest, db: Session = Depends(get_db),
              current_user: User = Depends(require_roles(Role.PHARMACY, Role.ADMIN))):
    """Report a suspicious drug: raises an alert and moves the drug to flagged."""
    role = resolve_role(current_user)
    try:
        drug, _alert = custody_service.flag_drug(
            db, drug_id, role, data.alert_type, data.description,
            location=data.location, user_id=current_user.id, expected_status=data.expected_status,
        )
        return drug
    except MediTrackError as e:
        raise to_http_exception(e)


@router.delete("/{drug_id}")
def delete_drug(drug_id: int, db: Session = Depends(get_db),
                current_user: User = Depends(require_roles(Role.ADMIN))):
    """Hard delete, including the drug's events and alerts."""
    try:
        drug_registry.delete_drug(db, drug_id, user_id=current_user.id)
    except MediTrackError as e:
        raise to_http_exception(e)
    return {"ok": True, "deleted": drug_id}


@router.get("/{drug_id}/label.pdf")
def download_label(drug_id: int, db: Session = Depends(get_db),
                   current_user: User = Depends(require_roles(Role.MANUFACTURER, Role.ADMIN))):
    """Printable QR label. Owning manufacturer or admin only."""
    try:
        drug = drug_registry.get_drug(db, drug_id)
    except MediTrackError as e:
        raise to_http_exception(e)
    if not user_can_manage_drug(current_user, drug):
        AuditLog.log_access_denied("label", "drug", drug_id, current_user.id, "not the owning manufacturer")
        raise BusinessError.forbidden(reason=f"user {current_user.id} label for drug {drug_id}")

    buffer = generate_label_pdf(drug)
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{drug.verification_code}.pdf"'},
    )
