"""
Shared plumbing for application services.

Every service takes the acting Principal explicitly, authorizes through
rbac.policy before touching the store, reads through the retrying helpers
and records audit entries only after a mutation has succeeded.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from audit.event_types import AuditAction, target_for_resource
from audit.recorder import AuditRecorder
from database.store import DataStore, Query, get_with_retry, query_with_retry
from domain.errors import AuthorizationError
from domain.resources import ResourceType
from rbac.context import Principal
from rbac.policy import Operation, authorize, row_filter
from resilience.retry import RetryConfig

logger = logging.getLogger(__name__)


class ServiceBase:
    """Policy, store and recorder wiring shared by the services."""

    def __init__(
        self,
        store: DataStore,
        recorder: AuditRecorder,
        retry_config: Optional[RetryConfig] = None,
        audit_denied: bool = False,
    ):
        self._store = store
        self._recorder = recorder
        self._retry_config = retry_config
        self._audit_denied = audit_denied

    # =========================================================================
    # AUTHORIZATION
    # =========================================================================

    async def _authorize(
        self,
        principal: Optional[Principal],
        resource_type: ResourceType,
        operation: Operation,
        target: Optional[Mapping[str, Any]] = None,
    ) -> None:
        try:
            authorize(principal, resource_type, operation, target)
        except AuthorizationError as e:
            await self._record_denied(principal, e, target)
            raise

    async def _row_filter(self, principal: Optional[Principal], resource_type: ResourceType) -> Dict[str, Any]:
        try:
            return row_filter(principal, resource_type)
        except AuthorizationError as e:
            await self._record_denied(principal, e)
            raise

    async def _record_denied(
        self,
        principal: Optional[Principal],
        error: AuthorizationError,
        target: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not self._audit_denied:
            return
        target_id = None
        if target is not None and target.get("id") is not None:
            target_id = str(target["id"])
        await self._recorder.record(
            principal.id if principal else None,
            AuditAction.ACCESS_DENIED,
            target_for_resource(error.resource_type or ""),
            target_id,
            {"operation": error.operation},
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def _get(self, resource_type: ResourceType, resource_id: str) -> Optional[Dict[str, Any]]:
        return await get_with_retry(self._store, resource_type, resource_id, self._retry_config)

    async def _query(self, resource_type: ResourceType, query: Optional[Query] = None) -> List[Dict[str, Any]]:
        return await query_with_retry(self._store, resource_type, query, self._retry_config)
