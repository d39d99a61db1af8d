"""
Role-Based Access Control (RBAC)

Three-role access control for the incident desk.

Hierarchy:
    employee < it < admin

Usage:
    from rbac import Principal, Role, Operation, authorize, has_role_or_higher

    authorize(principal, ResourceType.INCIDENT, Operation.UPDATE, incident_row)
    if has_role_or_higher(principal, Role.IT):
        ...
"""

from .roles import Role, RoleInfo, ROLES, get_role_info, highest_role, parse_role
from .context import Principal
from .permissions import effective_roles, has_role, has_role_or_higher
from .policy import Operation, POLICY, authorize, is_allowed, row_filter
from .identity import IdentityProvider, SessionCache, SessionIdentityProvider

__all__ = [
    # Roles
    "Role",
    "RoleInfo",
    "ROLES",
    "get_role_info",
    "highest_role",
    "parse_role",
    # Principal
    "Principal",
    # Permission evaluator
    "effective_roles",
    "has_role",
    "has_role_or_higher",
    # Policy
    "Operation",
    "POLICY",
    "authorize",
    "is_allowed",
    "row_filter",
    # Identity
    "IdentityProvider",
    "SessionCache",
    "SessionIdentityProvider",
]
