"""Alerts: manual anomaly records tied to a drug. Independent of Drug.status."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.exceptions import AlertNotFound, DrugNotFound, ValidationError
from app.models.alert import Alert
from app.models.drug import Drug

logger = logging.getLogger(__name__)


def create_alert(db: Session, drug_id: int, alert_type: str, description: str,
                 user_id: Optional[int] = None) -> Alert:
    alert_type = (alert_type or "").strip()
    description = (description or "").strip()
    if not alert_type:
        raise ValidationError("alert_type", "must not be blank")
    if not description:
        raise ValidationError("description", "must not be blank")
    if not db.query(Drug.id).filter(Drug.id == drug_id).first():
        raise DrugNotFound(drug_id)

    alert = Alert(drug_id=drug_id, alert_type=alert_type, description=description, resolved=False)
    db.add(alert)
    db.commit()
    db.refresh(alert)
    logger.info(f"Alert {alert.id} ({alert_type}) raised for drug {drug_id}")
    AuditLog.log_action("create", "alert", alert.id, user_id=user_id, changes={"drug_id": drug_id, "type": alert_type})
    return alert


def list_by_drug(db: Session, drug_id: int) -> list[Alert]:
    return (
        db.query(Alert)
        .filter(Alert.drug_id == drug_id)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .all()
    )


def list_unresolved(db: Session) -> list[Alert]:
    return (
        db.query(Alert)
        .filter(Alert.resolved.is_(False))
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .all()
    )


def list_all(db: Session) -> list[Alert]:
    return db.query(Alert).order_by(Alert.created_at.desc(), Alert.id.desc()).all()


def get_alert(db: Session, alert_id: int) -> Alert:
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise AlertNotFound(alert_id)
    return alert


def resolve_alert(db: Session, alert_id: int, user_id: Optional[int] = None) -> Alert:
    """Flip resolved. Does not touch the drug's status."""
    alert = get_alert(db, alert_id)
    if not alert.resolved:
        alert.resolved = True
        db.commit()
        db.refresh(alert)
        AuditLog.log_action("resolve", "alert", alert.id, user_id=user_id)
    return alert
