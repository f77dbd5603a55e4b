from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class Alert(Base):
    """
    Flagged anomaly for a drug. Creating one does not change Drug.status;
    `resolved` is a manual flip with no further workflow.
    """
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    drug_id = Column(Integer, ForeignKey("drugs.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(String(64), nullable=False)  # e.g. duplicate_scan, expired, unregistered_origin
    description = Column(Text, nullable=False)
    resolved = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    drug = relationship("Drug", back_populates="alerts")
