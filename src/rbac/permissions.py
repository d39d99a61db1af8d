"""
Permission Evaluator

Pure predicates over a principal's role assignments.

Role checks are existential over the assigned set, not over a single field:
a principal holding both employee and it assignments passes
has_role_or_higher(Role.IT) even if its legacy primary role still says
employee.

All functions are total. A missing principal or an empty role set is the
least-privileged case and yields False, never an exception.
"""

from typing import FrozenSet, Optional

from .context import Principal
from .roles import Role, at_least


def effective_roles(principal: Optional[Principal]) -> FrozenSet[Role]:
    """
    Roles the principal actually holds.

    The multi-role assignment set when non-empty, otherwise the legacy
    primary role as a singleton, otherwise the empty set.
    """
    if principal is None:
        return frozenset()
    if principal.roles:
        return frozenset(principal.roles)
    if principal.role is not None:
        return frozenset({principal.role})
    return frozenset()


def has_role(principal: Optional[Principal], role: Role) -> bool:
    """Check if the principal holds exactly this role."""
    return role in effective_roles(principal)


def has_role_or_higher(principal: Optional[Principal], min_role: Role) -> bool:
    """Check if any of the principal's roles is min_role or above."""
    return any(at_least(r, min_role) for r in effective_roles(principal))
