"""
Role Definitions

Three roles in a strict total order of increasing privilege:

    employee  (0)  - files incident reports, sees own incidents
    it        (1)  - triages and resolves incidents
    admin     (2)  - manages accounts, reads the audit trail

The set is closed. Raw role strings are only ever compared in this module;
everything else goes through Role members and the helpers below.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from domain.errors import ValidationError


class Role(str, Enum):
    """All roles in the system."""

    EMPLOYEE = "employee"
    """Reports incidents. Who: every staff member."""

    IT = "it"
    """Triages incidents and transitions their status. Who: IT / security desk."""

    ADMIN = "admin"
    """Manages user accounts and reviews the audit log. Who: administrators."""


@dataclass(frozen=True)
class RoleInfo:
    """Complete information about a role."""
    role: Role
    name: str
    description: str
    rank: int


ROLES: dict[Role, RoleInfo] = {
    Role.EMPLOYEE: RoleInfo(
        role=Role.EMPLOYEE,
        name="Employee",
        description="Reports security incidents",
        rank=0,
    ),
    Role.IT: RoleInfo(
        role=Role.IT,
        name="IT",
        description="Triages and resolves incidents",
        rank=1,
    ),
    Role.ADMIN: RoleInfo(
        role=Role.ADMIN,
        name="Admin",
        description="Manages users and reviews audit logs",
        rank=2,
    ),
}


def get_role_info(role: Role) -> RoleInfo:
    """Get information about a role."""
    return ROLES[role]


def rank(role: Role) -> int:
    """Privilege rank of a role: employee=0, it=1, admin=2."""
    return ROLES[role].rank


def at_least(role: Role, min_role: Role) -> bool:
    """True if role is min_role or more privileged."""
    return rank(role) >= rank(min_role)


def highest_role(roles: Iterable[Role]) -> Role:
    """
    Most privileged role of a collection.

    Raises:
        ValueError: if roles is empty
    """
    return max(roles, key=rank)


def parse_role(value: Any) -> Role:
    """
    Deserialize a role value at the boundary.

    Unknown values are rejected, never coerced to a default.

    Raises:
        ValidationError: if value is not one of the defined roles
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        raise ValidationError(f"Invalid role {value!r}; expected one of: {allowed}", field="role", value=value)
