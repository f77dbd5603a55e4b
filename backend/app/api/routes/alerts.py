"""Alerts: raise, list, resolve. Raising an alert never changes drug status."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.core.exceptions import MediTrackError, to_http_exception
from app.core.permissions import SUPPLY_CHAIN_ROLES
from app.models.enums import Role
from app.models.user import User
from app.schemas.alert import AlertCreate, AlertRecord
from app.services import alert_service

router = APIRouter()


@router.post("", response_model=AlertRecord, status_code=201)
def create_alert(data: AlertCreate, db: Session = Depends(get_db),
                 current_user: User = Depends(require_roles(Role.PHARMACY, Role.DISTRIBUTOR, Role.ADMIN))):
    try:
        return alert_service.create_alert(db, data.drug_id, data.alert_type, data.description,
                                          user_id=current_user.id)
    except MediTrackError as e:
        raise to_http_exception(e)


@router.get("", response_model=list[AlertRecord])
def list_alerts(unresolved: bool = False, db: Session = Depends(get_db),
                current_user: User = Depends(require_roles(*SUPPLY_CHAIN_ROLES))):
    """Newest first. `unresolved=true` feeds dashboard counters."""
    if unresolved:
        return alert_service.list_unresolved(db)
    return alert_service.list_all(db)


@router.post("/{alert_id}/resolve", response_model=AlertRecord)
def resolve_alert(alert_id: int, db: Session = Depends(get_db),
                  current_user: User = Depends(require_roles(Role.PHARMACY, Role.ADMIN))):
    try:
        return alert_service.resolve_alert(db, alert_id, user_id=current_user.id)
    except MediTrackError as e:
        raise to_http_exception(e)
