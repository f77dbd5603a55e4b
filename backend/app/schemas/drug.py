from pydantic import BaseModel, computed_field, field_validator
from typing import Optional
from datetime import date, datetime

from app.models.enums import DrugStatus
from app.services.drug_registry import qr_payload as build_qr_payload


class DrugCreate(BaseModel):
    name: str
    batch_number: str
    expiry_date: date

    @field_validator('name', 'batch_number')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        if len(v) > 255:
            raise ValueError('must be at most 255 characters')
        return v


class DrugResponse(BaseModel):
    id: int
    verification_code: str
    name: str
    batch_number: str
    expiry_date: date
    manufacturer_id: int
    status: DrugStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def qr_payload(self) -> str:
        """URL to encode in the QR image, so the client can render it right after registration."""
        return build_qr_payload(self.verification_code)

    class Config:
        from_attributes = True


class StatusUpdate(BaseModel):
    status: DrugStatus
    location: str = ""
    # Compare-and-set: the status the caller last saw. Mismatch => 409.
    expected_status: Optional[DrugStatus] = None

    @field_validator('location')
    @classmethod
    def trim_location(cls, v: str) -> str:
        return v.strip()[:255]


class FlagRequest(BaseModel):
    alert_type: str = "suspicious"
    description: str
    location: str = ""
    expected_status: Optional[DrugStatus] = None

    @field_validator('alert_type', 'description')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v
