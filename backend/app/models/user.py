from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class User(Base):
    """
    Signed-in principal. `role` is assigned at signup or by an admin and is
    never changed self-service. NULL role means the account is pending and
    may not perform any privileged action.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)  # manufacturer | distributor | pharmacy | consumer | admin
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User id={self.id} role={self.role}>"
