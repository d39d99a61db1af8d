"""
Audit action labels and target types.

Labels are free-form strings in storage; these are the ones the
application writes. Incident updates embed the new status in the label,
e.g. "incident_status_updated_to_resolved".
"""

from enum import Enum


class AuditAction(str, Enum):
    """Actions written to the audit log."""

    # Authentication
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"

    # Incidents
    INCIDENT_CREATED = "incident_created"

    # User management
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    ROLE_ASSIGNED = "role_assigned"
    ROLE_REVOKED = "role_revoked"

    # Security
    ACCESS_DENIED = "access_denied"


class AuditTarget(str, Enum):
    """Target types recorded with each entry."""
    AUTH = "auth"
    INCIDENT = "incident"
    USER = "user"
    AUDIT_LOG = "audit_log"


# Denied attempts are labelled like the successful operation on the same resource.
RESOURCE_TARGETS = {
    "profile": AuditTarget.USER,
    "user_role": AuditTarget.USER,
    "incident": AuditTarget.INCIDENT,
    "audit_entry": AuditTarget.AUDIT_LOG,
}


def target_for_resource(resource_type: str) -> str:
    """Audit target type for a store resource type."""
    target = RESOURCE_TARGETS.get(resource_type)
    return target.value if target is not None else resource_type


INCIDENT_STATUS_UPDATED_PREFIX = "incident_status_updated_to_"


def incident_status_label(status: str) -> str:
    """Action label for an incident moved to status."""
    return f"{INCIDENT_STATUS_UPDATED_PREFIX}{status}"
