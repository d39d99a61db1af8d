"""Audit log review. Admin only."""

import logging
from typing import List, Optional

from audit.entry import AuditEntry
from database.store import Query
from domain.errors import ValidationError
from domain.resources import ResourceType
from rbac.context import Principal

from .base import ServiceBase

logger = logging.getLogger(__name__)

MAX_AUDIT_LIMIT = 1000


class AuditLogService(ServiceBase):
    """Read access to the audit trail."""

    def __init__(self, *args, default_limit: int = 100, **kwargs):
        super().__init__(*args, **kwargs)
        self.default_limit = default_limit

    async def list_entries(
        self,
        principal: Optional[Principal],
        limit: Optional[int] = None,
        action: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[AuditEntry]:
        """Most recent entries first, optionally filtered by action label or actor."""
        filters = await self._row_filter(principal, ResourceType.AUDIT_ENTRY)

        limit = self.default_limit if limit is None else limit
        if not 1 <= limit <= MAX_AUDIT_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_AUDIT_LIMIT}", field="limit", value=limit)
        if action:
            filters["action"] = action
        if user_id:
            filters["user_id"] = user_id

        rows = await self._query(
            ResourceType.AUDIT_ENTRY,
            Query(filters=filters, order_by="created_at", descending=True, limit=limit),
        )
        return [AuditEntry.from_row(row) for row in rows]
