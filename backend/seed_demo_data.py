"""Seed demo accounts and drugs through the same services the API uses.

Creates one user per role (password printed once) and two batches:
- Amoxicillin 500mg: full custody chain, sold, authentic
- Ibuprofen 400mg: distributed, then flagged with a duplicate-scan alert
"""
import secrets
from datetime import date

from app.core.security import get_password_hash
from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.models.enums import DrugStatus, Role
from app.models.user import User
from app.services import custody_service, drug_registry

DEMO_USERS = [
    ("pharmacorp@meditrack.io", "PharmaCorp QA", "PharmaCorp", Role.MANUFACTURER),
    ("medilogistics@meditrack.io", "MediLogistics Dispatch", "MediLogistics", Role.DISTRIBUTOR),
    ("healthfirst@meditrack.io", "HealthFirst Pharmacy", "HealthFirst", Role.PHARMACY),
    ("consumer@meditrack.io", "Demo Consumer", None, Role.CONSUMER),
]


def _get_or_create_user(db, email, name, organization, role, password):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user, False
    user = User(email=email, hashed_password=get_password_hash(password), name=name,
                organization=organization, role=role.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, True


def seed_demo_data():
    init_db()
    db = SessionLocal()
    try:
        password = secrets.token_urlsafe(12) + "1!"
        users = {}
        for email, name, organization, role in DEMO_USERS:
            user, created = _get_or_create_user(db, email, name, organization, role, password)
            users[role] = user
            print(f"{'Created' if created else 'Exists '} {role.value:<12} {email}")

        manufacturer = users[Role.MANUFACTURER]
        distributor = users[Role.DISTRIBUTOR]
        pharmacy = users[Role.PHARMACY]

        amoxicillin = drug_registry.register_drug(db, "Amoxicillin 500mg", "BATCH-2024-001",
                                                  date(2026, 12, 31), manufacturer.id)
        custody_service.advance_status(db, amoxicillin.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                       location="Regional Distribution Center", user_id=distributor.id)
        custody_service.advance_status(db, amoxicillin.id, DrugStatus.IN_PHARMACY, Role.PHARMACY,
                                       location="HealthFirst Pharmacy", user_id=pharmacy.id)
        custody_service.advance_status(db, amoxicillin.id, DrugStatus.SOLD, Role.PHARMACY,
                                       location="HealthFirst Pharmacy", user_id=pharmacy.id)

        ibuprofen = drug_registry.register_drug(db, "Ibuprofen 400mg", "BATCH-2024-002",
                                                date(2026, 6, 30), manufacturer.id)
        custody_service.advance_status(db, ibuprofen.id, DrugStatus.DISTRIBUTED, Role.DISTRIBUTOR,
                                       location="Regional Distribution Center", user_id=distributor.id)
        custody_service.flag_drug(
            db, ibuprofen.id, Role.PHARMACY, "duplicate_scan",
            "Duplicate QR code detected: this code was already scanned at a different location.",
            location="City Pharmacy", user_id=pharmacy.id,
        )

        print(f"\nDemo password (all new accounts): {password}")
        print(f"Authentic: {drug_registry.qr_payload(amoxicillin.verification_code)}")
        print(f"Flagged:   {drug_registry.qr_payload(ibuprofen.verification_code)}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_data()
