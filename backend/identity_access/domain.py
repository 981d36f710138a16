"""
Identity domain: roles, profiles, and the role classifier.

Why:
- Centralize allowed roles to avoid drift between guards, navigation and the
  web layer.
- Keep the privilege order in one place so "admin satisfies management
  satisfies employee" cannot be re-implemented inconsistently.

Policy:
    A profile without a recognised role is classified as `employee`. Roles are
    never escalated by default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
import logging

logger = logging.getLogger("parking.identity_access")


class Role(str, Enum):
    """User roles as stored in `profiles.role`."""

    EMPLOYEE = "employee"
    MANAGEMENT = "management"
    ADMIN = "admin"


ALLOWED_ROLES = frozenset(r.value for r in Role)

# Higher rank satisfies every guard a lower rank satisfies.
ROLE_RANK: Mapping[Role, int] = {
    Role.EMPLOYEE: 0,
    Role.MANAGEMENT: 1,
    Role.ADMIN: 2,
}

DEFAULT_ROLE = Role.EMPLOYEE


def parse_role(value: Any) -> Optional[Role]:
    """Return the Role for a raw value, or None when unset/unknown.

    Matching is exact: `"ADMIN "` is not a role, it is malformed data.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or value not in ALLOWED_ROLES:
        return None
    return Role(value)


def has_privilege(role: Role, minimum: Role) -> bool:
    return ROLE_RANK[role] >= ROLE_RANK[minimum]


@dataclass(frozen=True)
class Profile:
    user_id: str
    full_name: str = ""
    role: Optional[Role] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        """Build a Profile from a `profiles` row (id, full_name, role)."""
        raw_role = row.get("role")
        role = parse_role(raw_role)
        if raw_role is not None and role is None:
            logger.warning("Profile has unrecognised role; treating as %s", DEFAULT_ROLE.value)
        return cls(
            user_id=str(row.get("id") or row.get("user_id") or ""),
            full_name=str(row.get("full_name") or ""),
            role=role,
        )


@dataclass(frozen=True)
class Identity:
    """Authenticated subject of a request."""

    id: str
    email: str = ""
    profile: Optional[Profile] = None

    @property
    def display_name(self) -> str:
        if self.profile and self.profile.full_name:
            return self.profile.full_name
        return self.email.split("@")[0] if self.email else "Usuario"


def classify_role(identity: Optional[Identity]) -> Role:
    """Map an identity (or its absence) to exactly one Role."""
    if identity is None or identity.profile is None:
        return DEFAULT_ROLE
    return identity.profile.role or DEFAULT_ROLE


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "Identity",
    "Profile",
    "ROLE_RANK",
    "Role",
    "classify_role",
    "has_privilege",
    "parse_role",
]
