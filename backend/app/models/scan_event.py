"""
ScanEvent: append-only observation/transition log entry. Never updated.

Ordered by (scanned_at, id); `id` breaks ties for writes in the same instant.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class ScanEvent(Base):
    __tablename__ = "scan_events"
    __table_args__ = (Index("ix_scan_events_drug_time", "drug_id", "scanned_at", "id"),)

    id = Column(Integer, primary_key=True, index=True)
    drug_id = Column(Integer, ForeignKey("drugs.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(32), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # NULL for anonymous consumers
    location = Column(String(255), nullable=True)
    result = Column(String(32), nullable=False)  # new status, or verified/flagged for observations
    explanation = Column(Text, nullable=True)
    scanned_at = Column(DateTime(timezone=True), server_default=func.now())

    drug = relationship("Drug", back_populates="events")
