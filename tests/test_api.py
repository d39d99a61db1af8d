"""
HTTP API Tests

Exercises the FastAPI application end to end over an in-memory store:
sign-in, incident reporting and triage, user management, the audit log
and the error response shape.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from rbac.roles import Role
from web.app import create_app

from conftest import TEST_JWT_SECRET, TEST_PASSWORD


@pytest.fixture
def app(store):
    settings = Settings(_env_file=None, jwt_secret=TEST_JWT_SECRET, audit_enabled=True)
    return create_app(settings=settings, store=store, configure_logs=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def users(make_user):
    """One signed-up account per role."""
    return {
        "employee": asyncio.run(make_user("staff@example.com")),
        "it": asyncio.run(make_user("desk@example.com", roles=[Role.EMPLOYEE, Role.IT])),
        "admin": asyncio.run(make_user("boss@example.com", roles=[Role.ADMIN])),
    }


def _auth(client, email, password=TEST_PASSWORD):
    response = client.post("/api/auth/sign-in", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _report(client, headers, payload):
    response = client.post("/api/incidents", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# HEALTH AND ERROR SHAPE
# =============================================================================

class TestHealth:
    """Tests for the health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "InMemoryDataStore"

    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}


class TestErrorShape:
    """Tests for error responses."""

    def test_unauthenticated(self, client):
        response = client.get("/api/incidents", headers={"X-Request-ID": "req-123"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.headers["X-Request-ID"] == "req-123"
        body = response.json()
        assert body["error"]["code"] == "AUTH_REQUIRED"
        assert body["request_id"] == "req-123"

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_request_id_generated(self, client):
        response = client.get("/health/live")
        assert response.headers["X-Request-ID"]

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


# =============================================================================
# AUTH
# =============================================================================

class TestAuthAPI:
    """Tests for sign-in, /me and sign-out."""

    def test_sign_in_and_me(self, client, users):
        response = client.post("/api/auth/sign-in", json={"email": "desk@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["principal"]["roles"] == ["employee", "it"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == users["it"].id

    def test_bad_password(self, client, users):
        response = client.post("/api/auth/sign-in", json={"email": "staff@example.com", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid email or password"

    def test_sign_out_revokes_token(self, client, users):
        headers = _auth(client, "staff@example.com")
        assert client.post("/api/auth/sign-out", headers=headers).json() == {"status": "signed_out"}
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_sign_in_validation(self, client):
        response = client.post("/api/auth/sign-in", json={"email": "staff@example.com"})
        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "password"


# =============================================================================
# INCIDENTS
# =============================================================================

class TestIncidentsAPI:
    """Tests for reporting and triage over HTTP."""

    def test_report_is_attributed_to_caller(self, client, users, incident_payload):
        headers = _auth(client, "staff@example.com")
        incident = _report(client, headers, {**incident_payload, "created_by": users["admin"].id})
        assert incident["created_by"] == users["employee"].id
        assert incident["status"] == "new"

    def test_visibility(self, client, users, incident_payload):
        staff = _auth(client, "staff@example.com")
        desk = _auth(client, "desk@example.com")
        mine = _report(client, staff, incident_payload)
        _report(client, desk, {**incident_payload, "title": "Lost badge", "category": "other"})

        own = client.get("/api/incidents", headers=staff).json()
        assert own["count"] == 1
        assert own["incidents"][0]["id"] == mine["id"]

        everything = client.get("/api/incidents", headers=desk).json()
        assert everything["count"] == 2

        filtered = client.get("/api/incidents", params={"status": "new", "category": "other"}, headers=desk).json()
        assert filtered["count"] == 1

    def test_read_other_incident_forbidden(self, client, users, incident_payload):
        staff = _auth(client, "staff@example.com")
        desk = _auth(client, "desk@example.com")
        theirs = _report(client, desk, incident_payload)

        response = client.get(f"/api/incidents/{theirs['id']}", headers=staff)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_missing_incident(self, client, users):
        response = client.get("/api/incidents/does-not-exist", headers=_auth(client, "desk@example.com"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    def test_invalid_category(self, client, users, incident_payload):
        headers = _auth(client, "staff@example.com")
        response = client.post("/api/incidents", json={**incident_payload, "category": "spam"}, headers=headers)
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["field"] == "category"

    def test_missing_title(self, client, users, incident_payload):
        headers = _auth(client, "staff@example.com")
        payload = {k: v for k, v in incident_payload.items() if k != "title"}
        response = client.post("/api/incidents", json=payload, headers=headers)
        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "title"

    def test_triage(self, client, users, incident_payload):
        staff = _auth(client, "staff@example.com")
        desk = _auth(client, "desk@example.com")
        admin = _auth(client, "boss@example.com")
        incident = _report(client, staff, incident_payload)
        url = f"/api/incidents/{incident['id']}"

        assert client.patch(url, json={"status": "resolved"}, headers=staff).status_code == 403
        assert client.patch(url, json={"status": "resolved"}, headers=admin).status_code == 403

        response = client.patch(
            url,
            json={"status": "in_progress", "assigned_to": users["it"].id},
            headers=desk,
        )
        assert response.status_code == 200
        assert response.json()["assigned_to"] == users["it"].id

        response = client.patch(url, json={"status": "resolved", "resolution_comment": "Blocked"}, headers=desk)
        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolution_comment"] == "Blocked"
        assert data["assigned_to"] == users["it"].id

        response = client.patch(url, json={"status": "resolved", "assigned_to": None}, headers=desk)
        assert response.json()["assigned_to"] is None

        assert client.get("/api/incidents/stats", headers=staff).json() == {
            "total": 1, "new": 0, "in_progress": 0, "resolved": 1,
        }


# =============================================================================
# USERS AND AUDIT LOG
# =============================================================================

class TestUsersAPI:
    """Tests for account and role management over HTTP."""

    def test_non_admin_cannot_list_users(self, client, users):
        response = client.get("/api/users", headers=_auth(client, "desk@example.com"))
        assert response.status_code == 403

    def test_user_lifecycle(self, client, users):
        admin = _auth(client, "boss@example.com")

        response = client.post("/api/users", json={
            "email": "hire@example.com",
            "password": TEST_PASSWORD,
            "first_name": "New",
            "last_name": "Hire",
            "role": "employee",
        }, headers=admin)
        assert response.status_code == 201
        user_id = response.json()["id"]

        response = client.post(f"/api/users/{user_id}/roles", json={"role": "it"}, headers=admin)
        assert response.status_code == 201
        assert response.json()["roles"] == ["employee", "it"]

        hire = _auth(client, "hire@example.com")
        assert client.get(f"/api/users/{user_id}/roles", headers=hire).json()["roles"] == ["employee", "it"]
        assert client.get("/api/users", headers=hire).status_code == 403

        response = client.delete(f"/api/users/{user_id}/roles/it", headers=admin)
        assert response.json()["roles"] == ["employee"]

        response = client.delete(f"/api/users/{user_id}/roles/employee", headers=admin)
        assert response.status_code == 422

        response = client.patch(f"/api/users/{user_id}", json={"first_name": "Renamed"}, headers=admin)
        assert response.json()["first_name"] == "Renamed"

        assert client.get("/api/users/stats", headers=admin).json()["total"] == 4

        assert client.delete(f"/api/users/{user_id}", headers=admin).status_code == 204
        assert client.get(f"/api/users/{user_id}", headers=admin).status_code == 404
        assert client.get("/api/auth/me", headers=hire).status_code == 401

    def test_unknown_role(self, client, users):
        admin = _auth(client, "boss@example.com")
        response = client.post(f"/api/users/{users['employee'].id}/roles", json={"role": "root"}, headers=admin)
        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "role"


class TestAuditLogAPI:
    """Tests for the audit log listing."""

    def test_admin_reads_audit_log(self, client, users, incident_payload):
        staff = _auth(client, "staff@example.com")
        _report(client, staff, incident_payload)
        admin = _auth(client, "boss@example.com")

        data = client.get("/api/audit-logs", headers=admin).json()
        actions = [e["action"] for e in data["entries"]]
        assert "incident_created" in actions
        assert actions.count("user_signed_in") == 2

        created = client.get("/api/audit-logs", params={"action": "incident_created"}, headers=admin).json()
        assert created["count"] == 1
        assert created["entries"][0]["user_id"] == users["employee"].id

    def test_non_admin_forbidden(self, client, users):
        for email in ("staff@example.com", "desk@example.com"):
            response = client.get("/api/audit-logs", headers=_auth(client, email))
            assert response.status_code == 403

    def test_limit_bounds(self, client, users):
        admin = _auth(client, "boss@example.com")
        assert client.get("/api/audit-logs", params={"limit": 0}, headers=admin).status_code == 422
        assert client.get("/api/audit-logs", params={"limit": 1}, headers=admin).json()["count"] == 1
