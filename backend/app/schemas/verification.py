from pydantic import BaseModel
from typing import Optional

from app.schemas.drug import DrugResponse
from app.schemas.scan_event import ScanEventRecord
from app.schemas.alert import AlertRecord


class VerificationResponse(BaseModel):
    """`drug` is null for an unknown code: treat as a possible counterfeit, not an error."""
    drug: Optional[DrugResponse] = None
    events: list[ScanEventRecord] = []
    alerts: list[AlertRecord] = []
    is_authentic: bool = False
