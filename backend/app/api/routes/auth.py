"""Auth: register, login, profile and admin role assignment.

- Passwords hashed with passlib
- Password strength validation from settings
- httpOnly, SameSite cookies alongside the bearer token
- Roles: chosen at signup (never admin), otherwise pending until an admin assigns one
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user, require_roles
from app.core.audit import AuditLog
from app.core.config import settings
from app.core.exceptions import BusinessError
from app.core.permissions import home_route, resolve_role
from app.core.security import verify_password, get_password_hash, create_access_token
from app.models.enums import Role
from app.models.user import User
from app.schemas.user import UserCreate, UserLogin, UserResponse, MeResponse, RoleAssignment, Token

router = APIRouter()

SPECIAL_CHARS = "!@#$%^&*()-_=+[]{}|;:',.<>?/"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def check_password_policy(password: str) -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise BusinessError.bad_request(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    if settings.REQUIRE_SPECIAL_CHARS and not any(c in SPECIAL_CHARS for c in password):
        raise BusinessError.bad_request("Password must contain at least one special character (!@#$%^&*)")
    if settings.REQUIRE_NUMBERS and not any(c.isdigit() for c in password):
        raise BusinessError.bad_request("Password must contain at least one number")


@router.post("/register", response_model=UserResponse)
def register(data: UserCreate, request: Request, db: Session = Depends(get_db)):
    """Create an account. The role is fixed from here on except by an admin."""
    if db.query(User).filter(User.email == data.email).first():
        raise BusinessError.bad_request("Email already registered")
    check_password_policy(data.password)

    user = User(
        email=data.email,
        hashed_password=get_password_hash(data.password),
        name=data.name,
        organization=data.organization,
        role=data.role.value if data.role else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    AuditLog.log_authentication("register", user.email, _client_ip(request), True)
    return user


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    """Generic error message on failure to prevent user enumeration."""
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        AuditLog.log_authentication("failed_login", data.email, _client_ip(request), False,
                                    reason="invalid credentials")
        raise BusinessError.unauthorized(reason=f"failed login for {data.email}")

    token = create_access_token(subject=user.id, role=user.role)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("login", user.email, _client_ip(request), True)
    return Token(access_token=token)


@router.post("/logout")
def logout(response: Response, current_user: User = Depends(get_current_user)):
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    """Profile plus resolved role. `role_pending` means no dashboard is reachable yet."""
    role = resolve_role(current_user)
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        organization=current_user.organization,
        role=role,
        role_pending=role is None,
        home_route=home_route(role),
    )


@router.get("/users", response_model=list[UserResponse])
def list_users(pending_only: bool = False, db: Session = Depends(get_db),
               admin: User = Depends(require_roles(Role.ADMIN))):
    query = db.query(User)
    if pending_only:
        query = query.filter(User.role.is_(None))
    return query.order_by(User.id).all()


@router.put("/users/{user_id}/role", response_model=UserResponse)
def assign_role(user_id: int, data: RoleAssignment, db: Session = Depends(get_db),
                admin: User = Depends(require_roles(Role.ADMIN))):
    """Admin-only role change. The only way a role changes after signup."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise BusinessError.not_found("User")
    if user.id == admin.id and data.role != Role.ADMIN:
        raise BusinessError.bad_request("Admins cannot remove their own admin role")

    previous = user.role
    user.role = data.role.value if data.role else None
    db.commit()
    db.refresh(user)
    AuditLog.log_permission_change(user_id=user.id, granted_by=admin.id, role=user.role, previous_role=previous)
    return user
