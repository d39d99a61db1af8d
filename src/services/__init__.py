"""
Services Module - Application services for the incident desk.

Application Services (orchestration):
- IncidentService: Incident reporting and triage
- UserService: Account and role management
- AuthService: Sign-in / sign-out
- AuditLogService: Audit trail review

Infrastructure Services:
- Logging and observability
"""

from .incident_service import IncidentService
from .user_service import UserService
from .auth_service import AuthService
from .audit_log_service import AuditLogService

__all__ = [
    "IncidentService",
    "UserService",
    "AuthService",
    "AuditLogService",
]
