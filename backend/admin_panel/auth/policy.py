"""
Role-based authorization decisions.

Everything here is a pure function over roles and ids: no database access and
no exceptions. Routers turn a denied ``Verdict`` into a 403 through the
dependencies in ``auth.dependencies``; services do the same for the
resource-level rules.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Protocol

from ..users.models import UserRole


class Subject(Protocol):
    """Anything carrying a role (an ``Identity`` or a ``User`` row)."""
    role: Optional[UserRole]


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Verdict(True)


def deny(reason: str) -> Verdict:
    return Verdict(False, reason)


@dataclass(frozen=True)
class Capability:
    """A named set of roles permitted to invoke an operation."""
    name: str
    roles: FrozenSet[UserRole]
    denial_message: str = "Insufficient permissions"


IS_ADMIN = Capability("isAdmin", frozenset({UserRole.ADMIN}), "Admin access required")
IS_ADMIN_OR_EDITOR = Capability(
    "isAdminOrEditor",
    frozenset({UserRole.ADMIN, UserRole.EDITOR}),
    "Admin or Editor access required",
)
# Who may obtain tokens through the login flow
PANEL_ACCESS = Capability(
    "panelAccess",
    frozenset({UserRole.ADMIN, UserRole.EDITOR}),
    "Access denied. Admin or Editor role required.",
)

# Only these roles can be handed out through the role-update path
ASSIGNABLE_ROLES = frozenset({UserRole.WRITER, UserRole.READER})
PROTECTED_ROLES = frozenset({UserRole.ADMIN, UserRole.EDITOR})


def has_role(*roles: UserRole) -> Capability:
    return Capability("hasRole", frozenset(roles))


def _role_of(subject: Optional[Subject]) -> Optional[UserRole]:
    role = getattr(subject, "role", None)
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def authorize(identity: Optional[Subject], required: Capability) -> Verdict:
    role = _role_of(identity)
    if role is None or role not in required.roles:
        return deny(required.denial_message)
    return ALLOW


def _same(actor_id: int, target_id: int) -> bool:
    return str(actor_id) == str(target_id)


def authorize_role_change(actor_id: int, target_id: int, target_role: UserRole) -> Verdict:
    if _same(actor_id, target_id):
        return deny("Cannot change your own role")
    if UserRole(target_role) in PROTECTED_ROLES:
        return deny("Cannot change role for Admin or Editor users")
    return ALLOW


def authorize_status_toggle(actor_id: int, target_id: int) -> Verdict:
    if _same(actor_id, target_id):
        return deny("Cannot suspend your own account")
    return ALLOW
