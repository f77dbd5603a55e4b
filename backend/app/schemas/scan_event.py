from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ScanEventRecord(BaseModel):
    id: int
    drug_id: int
    role: str
    user_id: Optional[int] = None
    location: Optional[str] = None
    result: str
    explanation: Optional[str] = None
    scanned_at: Optional[datetime] = None

    class Config:
        from_attributes = True
