from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Optional


class AlertCreate(BaseModel):
    drug_id: int
    alert_type: str
    description: str

    @field_validator('alert_type', 'description')
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class AlertRecord(BaseModel):
    id: int
    drug_id: int
    alert_type: str
    description: str
    resolved: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
