"""Drug registry: register, look up, list and delete drug records.

Registration writes the drug and its "created" scan event in one commit.
"""
import logging
import secrets
import string
import time
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ai import fallback
from app.core.audit import AuditLog
from app.core.config import settings
from app.core.exceptions import ConflictError, DrugNotFound, ValidationError
from app.models.drug import Drug
from app.models.enums import DrugStatus, Role
from app.services import scan_log_service

logger = logging.getLogger(__name__)

CODE_PREFIX = "MED"
CODE_SUFFIX_LENGTH = 9
_BASE36 = string.digits + string.ascii_lowercase
REGISTRATION_LOCATION = "Manufacturing Facility"
# Fresh codes on a unique-constraint collision before giving up
MAX_CODE_ATTEMPTS = 3


def generate_verification_code() -> str:
    """MED-{epoch_millis}-{9 base36 chars}. Opaque to every consumer: never parse it."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(CODE_SUFFIX_LENGTH))
    return f"{CODE_PREFIX}-{int(time.time() * 1000)}-{suffix}"


def qr_payload(verification_code: str) -> str:
    """The URL encoded in the QR image. Carries no signature or expiry."""
    return f"{settings.PUBLIC_ORIGIN}/verify/{verification_code}"


def _validate(name: str, batch_number: str, expiry_date) -> tuple[str, str, date]:
    name = (name or "").strip()
    batch_number = (batch_number or "").strip()
    if not name:
        raise ValidationError("name", "must not be blank")
    if not batch_number:
        raise ValidationError("batch_number", "must not be blank")
    if isinstance(expiry_date, str):
        try:
            expiry_date = date.fromisoformat(expiry_date)
        except ValueError:
            raise ValidationError("expiry_date", "must be a calendar date (YYYY-MM-DD)")
    if not isinstance(expiry_date, date):
        raise ValidationError("expiry_date", "must be a calendar date (YYYY-MM-DD)")
    return name, batch_number, expiry_date


def register_drug(db: Session, name: str, batch_number: str, expiry_date, manufacturer_id: int) -> Drug:
    """
    Register a batch and record its "created" event.

    Uniqueness of the code is left to the storage constraint; a collision
    regenerates the code and retries.
    """
    name, batch_number, expiry_date = _validate(name, batch_number, expiry_date)

    for attempt in range(MAX_CODE_ATTEMPTS):
        drug = Drug(
            verification_code=generate_verification_code(),
            name=name,
            batch_number=batch_number,
            expiry_date=expiry_date,
            manufacturer_id=manufacturer_id,
            status=DrugStatus.CREATED.value,
        )
        try:
            db.add(drug)
            db.flush()
            scan_log_service.append_event(
                db,
                drug_id=drug.id,
                role=Role.MANUFACTURER,
                result=DrugStatus.CREATED.value,
                location=REGISTRATION_LOCATION,
                user_id=manufacturer_id,
                explanation=fallback.REGISTRATION_EXPLANATION,
                commit=False,
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if "verification_code" not in str(e.orig):
                raise
            logger.warning(f"Verification code collision, regenerating (attempt {attempt + 1})")
            continue

        db.refresh(drug)
        logger.info(f"Registered drug {drug.id} ({drug.verification_code}) for manufacturer {manufacturer_id}")
        AuditLog.log_action(
            "register", "drug", drug.id, user_id=manufacturer_id, role=Role.MANUFACTURER.value,
            changes={"batch_number": batch_number},
        )
        return drug

    raise ConflictError("Could not allocate a unique verification code")


def get_drug(db: Session, drug_id: int) -> Drug:
    drug = db.query(Drug).filter(Drug.id == drug_id).first()
    if not drug:
        raise DrugNotFound(drug_id)
    return drug


def find_by_code(db: Session, verification_code: str) -> Optional[Drug]:
    """None for an unknown code. Callers decide whether that is an error."""
    return db.query(Drug).filter(Drug.verification_code == verification_code).first()


def list_by_manufacturer(db: Session, manufacturer_id: int) -> list[Drug]:
    return (
        db.query(Drug)
        .filter(Drug.manufacturer_id == manufacturer_id)
        .order_by(Drug.created_at.desc(), Drug.id.desc())
        .all()
    )


def list_all(db: Session, status: Optional[DrugStatus] = None) -> list[Drug]:
    query = db.query(Drug)
    if status is not None:
        query = query.filter(Drug.status == DrugStatus(status).value)
    return query.order_by(Drug.created_at.desc(), Drug.id.desc()).all()


def delete_drug(db: Session, drug_id: int, user_id: Optional[int] = None) -> None:
    """Hard delete. Cascades to the drug's scan events and alerts."""
    drug = get_drug(db, drug_id)
    code = drug.verification_code
    db.delete(drug)
    db.commit()
    logger.info(f"Deleted drug {drug_id} ({code}) with its events and alerts")
    AuditLog.log_action("delete", "drug", drug_id, user_id=user_id, role=Role.ADMIN.value,
                        changes={"verification_code": code})
