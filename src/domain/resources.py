"""Resource types known to the store and the access policy."""

from enum import Enum


class ResourceType(str, Enum):
    """Protected resource kinds."""
    PROFILE = "profile"
    USER_ROLE = "user_role"
    INCIDENT = "incident"
    AUDIT_ENTRY = "audit_entry"
