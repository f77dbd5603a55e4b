"""Public verification: the consumer's QR scan lands here. No authentication."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.verification import VerificationResponse
from app.services.verification_service import verify_code

router = APIRouter()


@router.get("/{code}", response_model=VerificationResponse)
def verify(code: str, db: Session = Depends(get_db)):
    """
    Always 200. `drug: null` with `is_authentic: false` means the code is not
    registered: present it as a possible counterfeit. Each call records a
    consumer scan event.
    """
    return VerificationResponse.model_validate(verify_code(db, code), from_attributes=True)
