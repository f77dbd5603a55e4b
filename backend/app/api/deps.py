"""FastAPI dependencies: DB session, current user from JWT, role gates.

JWT is accepted from:
1. Authorization header (API clients, scanners)
2. httpOnly cookie (web frontend)
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.audit import AuditLog
from app.core.config import settings
from app.core.exceptions import BusinessError
from app.core.permissions import resolve_role
from app.core.security import decode_access_token
from app.db.session import SessionLocal
from app.models.enums import Role
from app.models.user import User

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """Header takes precedence over cookie."""
    token = None

    if credentials:
        token = credentials.credentials
    elif settings.AUTH_COOKIE_NAME in request.cookies:
        token = request.cookies[settings.AUTH_COOKIE_NAME]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub = decode_access_token(token)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(sub)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
) -> User:
    """Load current user from DB. The role is always read fresh here, never from the token."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_roles(*roles: Role) -> Callable[..., User]:
    """
    Dependency factory gating a route to `roles`.

    A pending role (NULL) is rejected before the role check so the client can
    show "awaiting role assignment" rather than "wrong dashboard".
    """
    allowed = frozenset(roles)

    def _dependency(request: Request, current_user: User = Depends(get_current_user)) -> User:
        role = resolve_role(current_user)
        if role is None:
            AuditLog.log_access_denied(request.method, request.url.path, None, current_user.id, "role pending")
            raise BusinessError.forbidden(reason=f"user {current_user.id} role pending",
                                          detail="Role assignment pending")
        if role not in allowed:
            AuditLog.log_access_denied(request.method, request.url.path, None, current_user.id,
                                       f"role {role.value} not in {sorted(r.value for r in allowed)}")
            raise BusinessError.forbidden(reason=f"user {current_user.id} role {role.value}")
        return current_user

    return _dependency
