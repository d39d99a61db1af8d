"""
Incident Service

Reporting and triage of security incidents.

- Any signed-in principal may report an incident; it is always attributed
  to the reporter.
- Reporters see their own incidents; it and admin see all of them.
- Only the it role moves incidents through new -> in_progress -> resolved.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from audit.event_types import AuditAction, AuditTarget, incident_status_label
from database.store import Query
from domain.errors import NotFoundError, UnauthenticatedError, ValidationError
from domain.incident import (
    Incident,
    IncidentStatus,
    build_incident_payload,
    parse_category,
    parse_status,
    utcnow,
)
from domain.resources import ResourceType
from rbac.context import Principal
from rbac.policy import Operation

from .base import ServiceBase

logger = logging.getLogger(__name__)

# Marks an optional argument the caller did not supply
UNSET: Any = object()


class IncidentService(ServiceBase):
    """Create, read, list and triage incidents."""

    async def create_incident(
        self,
        principal: Optional[Principal],
        payload: Mapping[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Incident:
        """
        Report a new incident as principal.

        Any created_by in the payload is ignored; the incident belongs to
        the caller.

        Raises:
            UnauthenticatedError: no principal
            ValidationError: missing or malformed field
        """
        if principal is None:
            raise UnauthenticatedError()

        row = build_incident_payload(payload, created_by=principal.id)
        await self._authorize(principal, ResourceType.INCIDENT, Operation.CREATE, row)

        incident = Incident.from_row(await self._store.insert_resource(ResourceType.INCIDENT, row))
        logger.info(f"Incident {incident.id} reported by {principal.id}")

        await self._recorder.record(
            principal.id,
            AuditAction.INCIDENT_CREATED,
            AuditTarget.INCIDENT,
            incident.id,
            {"title": incident.title, "category": incident.category.value},
            ip_address,
            user_agent,
        )
        return incident

    async def get_incident(self, principal: Optional[Principal], incident_id: str) -> Incident:
        """
        Raises:
            NotFoundError: no such incident
            AuthorizationError: principal is neither creator nor it-or-higher
        """
        row = await self._get(ResourceType.INCIDENT, incident_id)
        if row is None:
            raise NotFoundError(ResourceType.INCIDENT.value, incident_id)
        await self._authorize(principal, ResourceType.INCIDENT, Operation.READ, row)
        return Incident.from_row(row)

    async def list_incidents(
        self,
        principal: Optional[Principal],
        search: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Incident]:
        """
        Incidents visible to principal, newest first.

        Args:
            search: Case-insensitive match on title, description or the
                creator's email
            status: Only incidents in this status
            category: Only incidents in this category
            limit: Maximum number returned
        """
        filters = await self._row_filter(principal, ResourceType.INCIDENT)
        if status:
            filters["status"] = parse_status(status).value
        if category:
            filters["category"] = parse_category(category).value
        if limit is not None and limit < 1:
            raise ValidationError("limit must be positive", field="limit", value=limit)

        term = search.strip().lower() if search else ""
        rows = await self._query(
            ResourceType.INCIDENT,
            Query(filters=filters, order_by="created_at", descending=True, limit=None if term else limit),
        )

        if term:
            emails = await self._creator_emails({row["created_by"] for row in rows})
            rows = [
                row for row in rows
                if term in row["title"].lower()
                or term in row["description"].lower()
                or term in emails.get(row["created_by"], "")
            ]
            if limit is not None:
                rows = rows[:limit]

        return [Incident.from_row(row) for row in rows]

    async def update_incident(
        self,
        principal: Optional[Principal],
        incident_id: str,
        status: Any,
        resolution_comment: Optional[str] = None,
        assigned_to: Any = UNSET,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Incident:
        """
        Triage an incident.

        The status is always written. The resolution comment is written only
        when non-empty. assigned_to is written (or cleared with None) only
        when supplied. updated_at is refreshed; created_by never changes.

        Raises:
            NotFoundError: no such incident
            AuthorizationError: principal does not hold the it role
            ValidationError: unknown status or assignee
        """
        row = await self._get(ResourceType.INCIDENT, incident_id)
        if row is None:
            raise NotFoundError(ResourceType.INCIDENT.value, incident_id)
        await self._authorize(principal, ResourceType.INCIDENT, Operation.UPDATE, row)

        new_status = parse_status(status)
        patch: Dict[str, Any] = {"status": new_status.value, "updated_at": utcnow()}
        if resolution_comment and resolution_comment.strip():
            patch["resolution_comment"] = resolution_comment.strip()
        if assigned_to is not UNSET:
            if assigned_to is not None and await self._get(ResourceType.PROFILE, assigned_to) is None:
                raise ValidationError(f"Unknown assignee {assigned_to}", field="assigned_to", value=assigned_to)
            patch["assigned_to"] = assigned_to

        updated = Incident.from_row(
            await self._store.update_resource(ResourceType.INCIDENT, incident_id, patch)
        )
        logger.info(f"Incident {incident_id} moved from {row['status']} to {new_status.value} by {principal.id}")

        details: Dict[str, Any] = {"previous_status": row["status"], "status": new_status.value}
        if "resolution_comment" in patch:
            details["resolution_comment"] = patch["resolution_comment"]
        if "assigned_to" in patch:
            details["assigned_to"] = patch["assigned_to"]
        await self._recorder.record(
            principal.id,
            incident_status_label(new_status.value),
            AuditTarget.INCIDENT,
            incident_id,
            details,
            ip_address,
            user_agent,
        )
        return updated

    async def incident_stats(self, principal: Optional[Principal]) -> Dict[str, int]:
        """Counts by status over the incidents principal can see."""
        filters = await self._row_filter(principal, ResourceType.INCIDENT)
        rows = await self._query(ResourceType.INCIDENT, Query(filters=filters))

        stats = {"total": len(rows)}
        for status in IncidentStatus:
            stats[status.value] = sum(1 for row in rows if row["status"] == status.value)
        return stats

    async def _creator_emails(self, creator_ids) -> Dict[str, str]:
        emails = {}
        for creator_id in creator_ids:
            profile = await self._get(ResourceType.PROFILE, creator_id)
            if profile is not None:
                emails[creator_id] = (profile.get("email") or "").lower()
        return emails
