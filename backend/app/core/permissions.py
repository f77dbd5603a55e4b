"""
Role resolution and route gating.

A user's role is read from the database on every request. A NULL role is
"pending": it is its own state and denies every privileged action. No
default role is ever substituted while the lookup is unresolved.
"""
from typing import Optional

from app.models.drug import Drug
from app.models.enums import Role
from app.models.user import User

# Dashboard each role lands on
ROLE_HOME_ROUTES: dict[Role, str] = {
    Role.MANUFACTURER: "/manufacturer",
    Role.DISTRIBUTOR: "/distributor",
    Role.PHARMACY: "/pharmacy",
    Role.ADMIN: "/admin",
    Role.CONSUMER: "/verify",
}

SUPPLY_CHAIN_ROLES = frozenset({Role.MANUFACTURER, Role.DISTRIBUTOR, Role.PHARMACY, Role.ADMIN})


def resolve_role(user: User) -> Optional[Role]:
    """The user's role, or None while pending. Unknown stored values count as pending."""
    if not user.role:
        return None
    try:
        return Role(user.role)
    except ValueError:
        return None


def home_route(role: Optional[Role]) -> Optional[str]:
    return ROLE_HOME_ROUTES.get(role) if role is not None else None


def user_has_role(user: User, *roles: Role) -> bool:
    role = resolve_role(user)
    return role is not None and role in roles


def user_can_manage_drug(user: User, drug: Drug) -> bool:
    """Owning manufacturer or admin."""
    if user_has_role(user, Role.ADMIN):
        return True
    return user_has_role(user, Role.MANUFACTURER) and drug.manufacturer_id == user.id
