from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator

from app.models.enums import Role


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: str
    organization: Optional[str] = None
    # Omitted = role pending until an admin assigns one
    role: Optional[Role] = None

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()

    @field_validator('role')
    @classmethod
    def role_not_admin(cls, v: Optional[Role]) -> Optional[Role]:
        if v == Role.ADMIN:
            raise ValueError('The admin role cannot be self-assigned')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    organization: Optional[str] = None
    role: Optional[Role] = None

    class Config:
        from_attributes = True


class MeResponse(UserResponse):
    role_pending: bool
    home_route: Optional[str] = None


class RoleAssignment(BaseModel):
    """Admin-only. `None` puts the account back into the pending state."""
    role: Optional[Role] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
