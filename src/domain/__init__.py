"""
Domain layer for the incident desk.

Holds the incident model and the error taxonomy shared by every layer.
"""

from .errors import (
    IncidentDeskError,
    UnauthenticatedError,
    AuthorizationError,
    ValidationError,
    NotFoundError,
    StoreError,
    AuditAppendError,
)
from .resources import ResourceType
from .incident import (
    Incident,
    IncidentStatus,
    IncidentCategory,
    build_incident_payload,
    parse_status,
    parse_category,
)

__all__ = [
    # Errors
    "IncidentDeskError",
    "UnauthenticatedError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "AuditAppendError",
    # Resources
    "ResourceType",
    # Incidents
    "Incident",
    "IncidentStatus",
    "IncidentCategory",
    "build_incident_payload",
    "parse_status",
    "parse_category",
]
