"""
Incident Service Tests

Reporting, visibility, triage and the audit entries they leave behind.
"""

import pytest
from unittest.mock import AsyncMock, patch

from audit.recorder import AuditRecorder
from database.store import Query
from domain.errors import (
    AuthorizationError,
    NotFoundError,
    StoreError,
    UnauthenticatedError,
    ValidationError,
)
from domain.incident import IncidentStatus
from domain.resources import ResourceType
from rbac.roles import Role
from services.incident_service import IncidentService


@pytest.fixture
def service(store, recorder, fast_retry):
    return IncidentService(store, recorder, retry_config=fast_retry)


async def _audit_rows(store):
    return await store.query_resource(ResourceType.AUDIT_ENTRY, Query(order_by="created_at"))


# =============================================================================
# CREATE
# =============================================================================

class TestCreateIncident:
    """Tests for reporting incidents."""

    @pytest.mark.asyncio
    async def test_create_stamps_creator_and_defaults(self, service, employee, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        assert incident.created_by == employee.id
        assert incident.status == IncidentStatus.NEW
        assert incident.assigned_to is None
        assert incident.incident_date.tzinfo is not None

    @pytest.mark.asyncio
    async def test_client_created_by_is_ignored(self, service, employee, incident_payload):
        payload = {**incident_payload, "created_by": "someone-else", "status": "resolved"}
        incident = await service.create_incident(employee, payload)
        assert incident.created_by == employee.id
        assert incident.status == IncidentStatus.NEW

    @pytest.mark.asyncio
    async def test_create_records_audit_entry(self, service, store, employee, incident_payload):
        incident = await service.create_incident(employee, incident_payload, ip_address="10.1.1.1", user_agent="ua")
        rows = await _audit_rows(store)
        assert len(rows) == 1
        assert rows[0]["user_id"] == employee.id
        assert rows[0]["action"] == "incident_created"
        assert rows[0]["target_type"] == "incident"
        assert rows[0]["target_id"] == incident.id
        assert rows[0]["details"] == {"title": incident_payload["title"], "category": "phishing"}
        assert rows[0]["ip_address"] == "10.1.1.1"

    @pytest.mark.asyncio
    async def test_create_requires_principal(self, service, incident_payload):
        with pytest.raises(UnauthenticatedError):
            await service.create_incident(None, incident_payload)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [
        ("title", ""),
        ("title", None),
        ("description", "   "),
        ("category", "spam"),
        ("incident_date", "yesterday"),
        ("incident_date", None),
    ])
    async def test_invalid_payload(self, service, store, employee, incident_payload, field, value):
        payload = {**incident_payload, field: value}
        with pytest.raises(ValidationError) as exc_info:
            await service.create_incident(employee, payload)
        assert exc_info.value.field == field
        assert store.count(ResourceType.INCIDENT) == 0
        assert store.count(ResourceType.AUDIT_ENTRY) == 0

    @pytest.mark.asyncio
    async def test_title_too_long(self, service, employee, incident_payload):
        with pytest.raises(ValidationError):
            await service.create_incident(employee, {**incident_payload, "title": "x" * 201})


# =============================================================================
# READ / LIST
# =============================================================================

class TestVisibility:
    """Tests for who sees which incidents."""

    @pytest.mark.asyncio
    async def test_employee_list_is_filtered_to_own(self, service, employee, it_user, incident_payload):
        mine = await service.create_incident(employee, incident_payload)
        await service.create_incident(it_user, {**incident_payload, "title": "Laptop stolen", "category": "data_loss"})

        listed = await service.list_incidents(employee)
        assert [i.id for i in listed] == [mine.id]

    @pytest.mark.asyncio
    async def test_it_and_admin_see_everything(self, service, employee, it_user, admin, incident_payload):
        await service.create_incident(employee, incident_payload)
        await service.create_incident(admin, {**incident_payload, "title": "USB found"})

        assert len(await service.list_incidents(it_user)) == 2
        assert len(await service.list_incidents(admin)) == 2

    @pytest.mark.asyncio
    async def test_list_requires_principal(self, service):
        with pytest.raises(UnauthenticatedError):
            await service.list_incidents(None)

    @pytest.mark.asyncio
    async def test_get_own_incident(self, service, employee, incident_payload):
        created = await service.create_incident(employee, incident_payload)
        fetched = await service.get_incident(employee, created.id)
        assert fetched.id == created.id

    @pytest.mark.asyncio
    async def test_get_other_incident_denied(self, service, employee, it_user, incident_payload):
        other = await service.create_incident(it_user, incident_payload)
        with pytest.raises(AuthorizationError):
            await service.get_incident(employee, other.id)

    @pytest.mark.asyncio
    async def test_get_missing(self, service, it_user):
        with pytest.raises(NotFoundError):
            await service.get_incident(it_user, "missing")

    @pytest.mark.asyncio
    async def test_filters(self, service, employee, it_user, incident_payload):
        phish = await service.create_incident(employee, incident_payload)
        malware = await service.create_incident(employee, {**incident_payload, "title": "Odd popup", "category": "malware"})
        await service.update_incident(it_user, malware.id, "in_progress")

        by_category = await service.list_incidents(it_user, category="phishing")
        assert [i.id for i in by_category] == [phish.id]

        by_status = await service.list_incidents(it_user, status="in_progress")
        assert [i.id for i in by_status] == [malware.id]

        with pytest.raises(ValidationError):
            await service.list_incidents(it_user, status="closed")

    @pytest.mark.asyncio
    async def test_search_matches_title_description_and_creator_email(
        self, service, make_user, incident_payload
    ):
        reporter = await make_user("jane.doe@example.com")
        triager = await make_user("triage@example.com", roles=[Role.IT])
        incident = await service.create_incident(reporter, incident_payload)
        await service.create_incident(triager, {**incident_payload, "title": "Server room door", "description": "Left open"})

        assert [i.id for i in await service.list_incidents(triager, search="INVOICE")] == [incident.id]
        assert [i.id for i in await service.list_incidents(triager, search="unknown link")] == [incident.id]
        assert [i.id for i in await service.list_incidents(triager, search="jane.doe")] == [incident.id]
        assert await service.list_incidents(triager, search="nothing matches") == []

    @pytest.mark.asyncio
    async def test_limit(self, service, it_user, incident_payload):
        for n in range(3):
            await service.create_incident(it_user, {**incident_payload, "title": f"Report {n}"})
        assert len(await service.list_incidents(it_user, limit=2)) == 2
        with pytest.raises(ValidationError):
            await service.list_incidents(it_user, limit=0)

    @pytest.mark.asyncio
    async def test_stats_respect_visibility(self, service, employee, it_user, incident_payload):
        mine = await service.create_incident(employee, incident_payload)
        await service.create_incident(it_user, incident_payload)
        await service.update_incident(it_user, mine.id, "resolved", "Blocked sender")

        assert await service.incident_stats(employee) == {"total": 1, "new": 0, "in_progress": 0, "resolved": 1}
        assert await service.incident_stats(it_user) == {"total": 2, "new": 1, "in_progress": 0, "resolved": 1}


# =============================================================================
# UPDATE
# =============================================================================

class TestUpdateIncident:
    """Tests for triage updates."""

    @pytest.mark.asyncio
    async def test_it_updates_status_and_comment(self, service, store, employee, it_user, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        updated = await service.update_incident(it_user, incident.id, "resolved", "  Sender blocked  ")

        assert updated.status == IncidentStatus.RESOLVED
        assert updated.resolution_comment == "Sender blocked"
        assert updated.created_by == employee.id
        assert updated.updated_at >= incident.updated_at

        rows = await _audit_rows(store)
        assert rows[-1]["action"] == "incident_status_updated_to_resolved"
        assert rows[-1]["user_id"] == it_user.id
        assert rows[-1]["details"]["previous_status"] == "new"
        assert rows[-1]["details"]["resolution_comment"] == "Sender blocked"

    @pytest.mark.asyncio
    async def test_blank_comment_keeps_existing(self, service, employee, it_user, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        await service.update_incident(it_user, incident.id, "resolved", "Done")
        reopened = await service.update_incident(it_user, incident.id, "in_progress", "   ")
        assert reopened.resolution_comment == "Done"

    @pytest.mark.asyncio
    async def test_employee_cannot_update(self, service, store, employee, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        with pytest.raises(AuthorizationError):
            await service.update_incident(employee, incident.id, "resolved")
        stored = await store.get_resource(ResourceType.INCIDENT, incident.id)
        assert stored["status"] == "new"

    @pytest.mark.asyncio
    async def test_admin_without_it_role_cannot_update(self, service, employee, admin, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        with pytest.raises(AuthorizationError):
            await service.update_incident(admin, incident.id, "in_progress")

    @pytest.mark.asyncio
    async def test_legacy_it_can_update(self, service, employee, legacy_it, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        updated = await service.update_incident(legacy_it, incident.id, "in_progress")
        assert updated.status == IncidentStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_unknown_status(self, service, employee, it_user, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        with pytest.raises(ValidationError) as exc_info:
            await service.update_incident(it_user, incident.id, "closed")
        assert exc_info.value.field == "status"

    @pytest.mark.asyncio
    async def test_update_missing(self, service, it_user):
        with pytest.raises(NotFoundError):
            await service.update_incident(it_user, "missing", "resolved")

    @pytest.mark.asyncio
    async def test_assignment(self, service, make_user, incident_payload):
        reporter = await make_user("reporter@example.com")
        triager = await make_user("triager@example.com", roles=[Role.EMPLOYEE, Role.IT])
        incident = await service.create_incident(reporter, incident_payload)

        assigned = await service.update_incident(triager, incident.id, "in_progress", assigned_to=triager.id)
        assert assigned.assigned_to == triager.id

        untouched = await service.update_incident(triager, incident.id, "in_progress")
        assert untouched.assigned_to == triager.id

        cleared = await service.update_incident(triager, incident.id, "new", assigned_to=None)
        assert cleared.assigned_to is None

        with pytest.raises(ValidationError) as exc_info:
            await service.update_incident(triager, incident.id, "new", assigned_to="ghost")
        assert exc_info.value.field == "assigned_to"

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_undo_update(self, service, store, employee, it_user, incident_payload):
        incident = await service.create_incident(employee, incident_payload)

        with patch.object(store, "append_audit_entry", AsyncMock(side_effect=StoreError("audit table locked"))):
            updated = await service.update_incident(it_user, incident.id, "resolved", "Handled")

        assert updated.status == IncidentStatus.RESOLVED
        stored = await store.get_resource(ResourceType.INCIDENT, incident.id)
        assert stored["status"] == "resolved"
        assert len(await _audit_rows(store)) == 1

    @pytest.mark.asyncio
    async def test_denied_attempt_audited_when_enabled(self, store, fast_retry, employee, incident_payload):
        service = IncidentService(store, AuditRecorder(store), retry_config=fast_retry, audit_denied=True)
        incident = await service.create_incident(employee, incident_payload)

        with pytest.raises(AuthorizationError):
            await service.update_incident(employee, incident.id, "resolved")

        rows = await _audit_rows(store)
        assert rows[-1]["action"] == "access_denied"
        assert rows[-1]["target_id"] == incident.id
        assert rows[-1]["details"] == {"operation": "update"}

    @pytest.mark.asyncio
    async def test_denied_attempt_not_audited_by_default(self, service, store, employee, incident_payload):
        incident = await service.create_incident(employee, incident_payload)
        with pytest.raises(AuthorizationError):
            await service.update_incident(employee, incident.id, "resolved")
        assert len(await _audit_rows(store)) == 1


# =============================================================================
# END TO END
# =============================================================================

class TestIncidentLifecycle:
    """Report, triage and audit in one flow."""

    @pytest.mark.asyncio
    async def test_report_triage_and_audit(self, service, store, make_user, incident_payload):
        reporter = await make_user("staff@example.com")
        triager = await make_user("desk@example.com", roles=[Role.EMPLOYEE, Role.IT])

        created = await service.create_incident(reporter, incident_payload)
        assert created.status == IncidentStatus.NEW

        visible = await service.list_incidents(triager)
        assert [i.id for i in visible] == [created.id]

        resolved = await service.update_incident(triager, created.id, "resolved", "Blocked sender")
        assert resolved.status == IncidentStatus.RESOLVED
        assert resolved.resolution_comment == "Blocked sender"

        rows = await _audit_rows(store)
        assert [(r["user_id"], r["action"]) for r in rows] == [
            (reporter.id, "incident_created"),
            (triager.id, "incident_status_updated_to_resolved"),
        ]
        assert all(r["target_id"] == created.id for r in rows)
