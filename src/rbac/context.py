"""
Principal Context

Principal is the value passed explicitly into every authorization check.
It is produced by the identity provider and never stored as ambient state.

Role data comes in two shapes:
    - role:  the legacy single "primary role" column on the profile
    - roles: the multi-role assignment rows (user_roles table)

Older accounts may only carry the legacy column. The fallback between the
two lives in rbac.permissions.effective_roles and nowhere else.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from .roles import Role, parse_role


@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity making the request.

    Usage:
        principal = await identity.get_current_principal(token)
        if has_role_or_higher(principal, Role.IT):
            ...
    """

    id: str
    """Unique identifier (profile id)."""

    email: str
    """Email address."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None

    role: Optional[Role] = None
    """Legacy primary role, kept for backward compatibility."""

    roles: FrozenSet[Role] = field(default_factory=frozenset)
    """Explicit role assignments. Empty when none were recorded."""

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email

    # =========================================================================
    # Factory Methods
    # =========================================================================

    @classmethod
    def from_records(
        cls,
        profile: Mapping[str, Any],
        role_rows: Iterable[Mapping[str, Any]] = (),
    ) -> "Principal":
        """
        Build a principal from a profile row and its user_roles rows.

        Role values are parsed strictly; an unknown value raises
        ValidationError instead of being mapped to a default.
        """
        legacy = profile.get("role")
        return cls(
            id=str(profile["id"]),
            email=profile.get("email", ""),
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            role=parse_role(legacy) if legacy is not None else None,
            roles=frozenset(parse_role(row["role"]) for row in role_rows),
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        from .permissions import effective_roles

        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "role": self.role.value if self.role else None,
            "roles": sorted(r.value for r in effective_roles(self)),
        }
