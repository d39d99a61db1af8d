"""
Audit Recorder

Appends audit entries after successful mutations. Recording is best-effort:
a failed append is logged and swallowed, and never undoes or fails the
action that triggered it.

Usage:
    recorder = AuditRecorder(store)
    await recorder.record(principal.id, AuditAction.INCIDENT_CREATED,
                          AuditTarget.INCIDENT, incident.id)
"""

import logging
from typing import Any, Dict, Optional, Union

from .entry import AuditEntry
from .event_types import AuditAction, AuditTarget

logger = logging.getLogger(__name__)


def _label(value: Union[str, AuditAction, AuditTarget]) -> str:
    return value.value if isinstance(value, (AuditAction, AuditTarget)) else str(value)


class AuditRecorder:
    """Best-effort writer of audit entries."""

    def __init__(self, store, enabled: bool = True):
        """
        Args:
            store: DataStore that receives entries via append_audit_entry.
            enabled: When False, record() is a no-op.
        """
        self._store = store
        self.enabled = enabled

    async def record(
        self,
        user_id: Optional[str],
        action: Union[str, AuditAction],
        target_type: Union[str, AuditTarget],
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        """
        Append one entry.

        Returns:
            The entry id, or None when recording is disabled or failed.
        """
        if not self.enabled:
            return None

        entry = AuditEntry(
            user_id=user_id,
            action=_label(action),
            target_type=_label(target_type),
            target_id=str(target_id) if target_id is not None else None,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            await self._store.append_audit_entry(entry)
        except Exception as e:
            logger.warning(
                f"Audit append failed for {entry.action} on {entry.target_type}:{entry.target_id}: {e}"
            )
            return None

        logger.debug(f"Audit: {entry.get_summary()}")
        return entry.id
