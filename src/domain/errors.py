"""
Error taxonomy for the incident desk.

Every failure the core can surface maps to exactly one of these classes.
The HTTP layer (web.errors) translates them to status codes:

    UnauthenticatedError -> 401
    AuthorizationError   -> 403
    NotFoundError        -> 404
    ValidationError      -> 422
    StoreError           -> 503

AuditAppendError is raised by stores when an audit append fails. The audit
recorder logs and swallows it, so callers never see it.
"""

from typing import Any, Dict, Optional


class IncidentDeskError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class UnauthenticatedError(IncidentDeskError):
    """No principal could be resolved for the request."""

    code = "AUTH_REQUIRED"

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AuthorizationError(IncidentDeskError):
    """
    The principal was resolved but lacks the role or ownership required.

    Never retried. Never turned into an empty result.
    """

    code = "AUTH_INSUFFICIENT_PERMISSIONS"

    def __init__(
        self,
        message: str = "Access denied",
        resource_type: Optional[str] = None,
        operation: Optional[str] = None,
        principal_id: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if resource_type:
            details["resource_type"] = resource_type
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.resource_type = resource_type
        self.operation = operation
        self.principal_id = principal_id


class ValidationError(IncidentDeskError):
    """Malformed input, reported with the offending field."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field
        self.value = value


class NotFoundError(IncidentDeskError):
    """The targeted resource does not exist."""

    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} {resource_id} not found"
        super().__init__(message, {"resource_type": resource_type, "resource_id": resource_id})
        self.resource_type = resource_type
        self.resource_id = resource_id


class StoreError(IncidentDeskError):
    """The underlying store is unreachable or failed transiently."""

    code = "SERVICE_UNAVAILABLE"


class AuditAppendError(StoreError):
    """An audit entry could not be appended."""

    code = "AUDIT_APPEND_FAILED"
