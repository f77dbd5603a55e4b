"""Create all tables. Run on app startup.

Creates a bootstrap admin with a random password when no users exist.
The admin role cannot be self-assigned through registration.
"""
import logging
import secrets

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.models import user, drug, scan_event, alert  # noqa: F401 - register models
from app.models.enums import Role
from app.models.user import User

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(User).count() == 0:
            default_password = secrets.token_urlsafe(16)
            admin = User(
                email=settings.BOOTSTRAP_ADMIN_EMAIL,
                hashed_password=get_password_hash(default_password),
                name="Administrator",
                role=Role.ADMIN.value,
            )
            db.add(admin)
            db.commit()

            # Printed once, on initial setup only
            print("\n" + "=" * 70)
            print("DEFAULT ADMIN USER CREATED")
            print("=" * 70)
            print(f"Email:    {settings.BOOTSTRAP_ADMIN_EMAIL}")
            print(f"Password: {default_password}")
            print("\nChange this password immediately after first login!")
            print("=" * 70 + "\n")
            logger.info("Bootstrap admin created")
    finally:
        db.close()
