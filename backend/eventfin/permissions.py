# Overview: Role definitions, role groups used by routes, and the authenticated principal.

"""
Roles and Principal

Roles are a closed set. Every user has exactly one role within their
organization. Routes gate on role groups; services receive the Principal
explicitly and use its org_id for tenant checks and its user_id for
attribution.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    FINANCE = "finance"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: str) -> "UserRole":
        """Parse a role name (case-insensitive). Raises ValueError if unknown."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


# -- ROLE GROUPS --

# Budget, expense and analytics writes
WRITE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.FINANCE)

# Budget, expense and analytics reads
READ_ROLES = WRITE_ROLES + (UserRole.VIEWER,)

# Organization-wide audit reads
ADMIN_ROLES = (UserRole.ADMIN,)


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller.

    Built once per request from the validated session record and passed
    explicitly into every service call.
    """
    user_id: int
    org_id: int
    role: UserRole

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles
