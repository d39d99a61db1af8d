"""
Audit trail for the incident desk.

Append-only record of sign-ins, incident changes and account management.

    from audit import AuditRecorder, AuditAction, AuditTarget

    recorder = AuditRecorder(store)
    await recorder.record(principal.id, AuditAction.USER_SIGNED_IN, AuditTarget.AUTH)
"""

from .entry import AuditEntry
from .event_types import (
    AuditAction,
    AuditTarget,
    INCIDENT_STATUS_UPDATED_PREFIX,
    incident_status_label,
)
from .recorder import AuditRecorder

__all__ = [
    "AuditEntry",
    "AuditAction",
    "AuditTarget",
    "INCIDENT_STATUS_UPDATED_PREFIX",
    "incident_status_label",
    "AuditRecorder",
]
