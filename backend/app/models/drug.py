"""
Drug: one physical batch under track.
Status flow: created -> distributed -> in_pharmacy -> sold, any of these -> flagged.

`verification_code` is the only thing printed in the QR payload. It is kept
apart from the primary key so codes stay opaque and non-sequential.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class Drug(Base):
    __tablename__ = "drugs"

    id = Column(Integer, primary_key=True, index=True)
    verification_code = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    batch_number = Column(String(128), nullable=False)
    expiry_date = Column(Date, nullable=False)
    manufacturer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String(32), nullable=False, default="created", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    manufacturer = relationship("User", backref="drugs")
    # Deleting a drug removes its history too (see DESIGN.md)
    events = relationship(
        "ScanEvent",
        back_populates="drug",
        cascade="all, delete-orphan",
    )
    alerts = relationship(
        "Alert",
        back_populates="drug",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Drug id={self.id} code={self.verification_code} status={self.status}>"
