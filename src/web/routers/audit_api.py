"""
Audit Log API.

Read-only view of the audit trail for administrators.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from rbac.context import Principal
from rbac.dependencies import require_principal
from services import AuditLogService
from web.dependencies import get_audit_log_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/audit-logs",
    tags=["Audit"],
)


@router.get("")
async def list_audit_logs(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    action: Optional[str] = Query(None, max_length=100),
    user_id: Optional[str] = Query(None),
    principal: Principal = Depends(require_principal),
    service: AuditLogService = Depends(get_audit_log_service),
):
    """Most recent entries first (default 100)."""
    entries = await service.list_entries(principal, limit=limit, action=action, user_id=user_id)
    return {
        "entries": [e.to_dict() for e in entries],
        "count": len(entries),
    }
