"""
Access Policy Table

Maps (resource type, operation) to the rules that allow it. The rules of
one pair form a disjunction ("ownership OR sufficient role"); a pair with
no entry is denied.

    Resource      Operation            Rule
    ----------    -----------------    ------------------------------------
    profile       read                 self OR admin
    profile       list/create/         admin
                  update/delete
    user_role     read                 own assignment OR admin
    user_role     list/create/delete   admin
    incident      create               payload created_by == principal
    incident      read                 creator OR it-or-higher
    incident      list                 any principal (narrowed by row_filter)
    incident      update               it (exactly; admins are excluded)
    audit_entry   read/list            admin
    audit_entry   create               anyone, including no principal

Incident update is deliberately limited to the it role. Admins manage
accounts; they do not triage. Widening this rule changes who can move an
incident to resolved.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from domain.errors import AuthorizationError, UnauthenticatedError
from domain.resources import ResourceType

from .context import Principal
from .permissions import has_role, has_role_or_higher
from .roles import Role

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operations subject to authorization."""
    READ = "read"
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


Target = Optional[Mapping[str, Any]]
Rule = Callable[[Optional[Principal], Target], bool]


# =============================================================================
# RULES
# =============================================================================

def _anyone(principal: Optional[Principal], target: Target) -> bool:
    return True


def _authenticated(principal: Optional[Principal], target: Target) -> bool:
    return principal is not None


def _is_admin(principal: Optional[Principal], target: Target) -> bool:
    return has_role(principal, Role.ADMIN)


def _is_it(principal: Optional[Principal], target: Target) -> bool:
    return has_role(principal, Role.IT)


def _is_it_or_higher(principal: Optional[Principal], target: Target) -> bool:
    return has_role_or_higher(principal, Role.IT)


def _is_own_profile(principal: Optional[Principal], target: Target) -> bool:
    return principal is not None and target is not None and str(target.get("id")) == principal.id


def _is_own_assignment(principal: Optional[Principal], target: Target) -> bool:
    return principal is not None and target is not None and str(target.get("user_id")) == principal.id


def _is_creator(principal: Optional[Principal], target: Target) -> bool:
    # Same check for reads (stored row) and creates (payload being inserted)
    return principal is not None and target is not None and str(target.get("created_by")) == principal.id


# =============================================================================
# POLICY TABLE
# =============================================================================

POLICY: Dict[Tuple[ResourceType, Operation], Tuple[Rule, ...]] = {
    # Profiles
    (ResourceType.PROFILE, Operation.READ): (_is_own_profile, _is_admin),
    (ResourceType.PROFILE, Operation.LIST): (_is_admin,),
    (ResourceType.PROFILE, Operation.CREATE): (_is_admin,),
    (ResourceType.PROFILE, Operation.UPDATE): (_is_admin,),
    (ResourceType.PROFILE, Operation.DELETE): (_is_admin,),

    # Role assignments
    (ResourceType.USER_ROLE, Operation.READ): (_is_own_assignment, _is_admin),
    (ResourceType.USER_ROLE, Operation.LIST): (_is_admin,),
    (ResourceType.USER_ROLE, Operation.CREATE): (_is_admin,),
    (ResourceType.USER_ROLE, Operation.DELETE): (_is_admin,),

    # Incidents
    (ResourceType.INCIDENT, Operation.CREATE): (_is_creator,),
    (ResourceType.INCIDENT, Operation.READ): (_is_creator, _is_it_or_higher),
    (ResourceType.INCIDENT, Operation.LIST): (_authenticated,),
    (ResourceType.INCIDENT, Operation.UPDATE): (_is_it,),

    # Audit log: write-open, read-restricted
    (ResourceType.AUDIT_ENTRY, Operation.READ): (_is_admin,),
    (ResourceType.AUDIT_ENTRY, Operation.LIST): (_is_admin,),
    (ResourceType.AUDIT_ENTRY, Operation.CREATE): (_anyone,),
}

# Pairs that do not require a resolved principal
ANONYMOUS_ALLOWED = frozenset({
    (ResourceType.AUDIT_ENTRY, Operation.CREATE),
})


# =============================================================================
# DECISIONS
# =============================================================================

def is_allowed(
    principal: Optional[Principal],
    resource_type: ResourceType,
    operation: Operation,
    target: Target = None,
) -> bool:
    """
    Decide whether principal may perform operation on a resource.

    Args:
        principal: Acting principal (None if unauthenticated)
        resource_type: Kind of resource
        operation: Requested operation
        target: The stored row (read/update/delete) or the payload (create)

    Returns:
        True if any rule for the pair allows it. False when no rule exists.
    """
    key = (resource_type, operation)
    if principal is None and key not in ANONYMOUS_ALLOWED:
        return False
    rules = POLICY.get(key, ())
    return any(rule(principal, target) for rule in rules)


def authorize(
    principal: Optional[Principal],
    resource_type: ResourceType,
    operation: Operation,
    target: Target = None,
) -> None:
    """
    Enforce the policy.

    Raises:
        UnauthenticatedError: no principal and the pair requires one
        AuthorizationError: the principal is not allowed
    """
    key = (resource_type, operation)
    if principal is None and key not in ANONYMOUS_ALLOWED:
        raise UnauthenticatedError()

    if not is_allowed(principal, resource_type, operation, target):
        logger.info(
            f"Access denied: {operation.value} {resource_type.value} "
            f"for principal {principal.id if principal else 'anonymous'}"
        )
        raise AuthorizationError(
            f"Not allowed to {operation.value} {resource_type.value}",
            resource_type=resource_type.value,
            operation=operation.value,
            principal_id=principal.id if principal else None,
        )


def row_filter(principal: Optional[Principal], resource_type: ResourceType) -> Dict[str, Any]:
    """
    Equality filter narrowing a list query to the rows principal may see.

    Incidents: principals below it only see rows they created; it and
    admin see everything. Other listings are all-or-nothing and raise
    instead of returning an empty filter for a denied principal.

    Raises:
        UnauthenticatedError / AuthorizationError: listing is not allowed
    """
    authorize(principal, resource_type, Operation.LIST)

    if resource_type == ResourceType.INCIDENT and not has_role_or_higher(principal, Role.IT):
        return {"created_by": principal.id}
    return {}
