"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from audit.recorder import AuditRecorder
from database.memory_store import InMemoryDataStore
from domain.resources import ResourceType
from rbac.context import Principal
from rbac.identity import SessionIdentityProvider
from rbac.roles import Role, highest_role
from resilience.retry import RetryConfig
from security.password import hash_password

TEST_JWT_SECRET = "test-secret-for-session-tokens-0123456789abcdef"
TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# PRINCIPALS
# =============================================================================


@pytest.fixture
def employee():
    return Principal(id="emp-1", email="emp@example.com", role=Role.EMPLOYEE, roles=frozenset({Role.EMPLOYEE}))


@pytest.fixture
def it_user():
    return Principal(id="it-1", email="it@example.com", role=Role.IT, roles=frozenset({Role.EMPLOYEE, Role.IT}))


@pytest.fixture
def admin():
    return Principal(id="admin-1", email="admin@example.com", role=Role.ADMIN, roles=frozenset({Role.ADMIN}))


@pytest.fixture
def legacy_it():
    """Older account: legacy role column only, no assignment rows."""
    return Principal(id="legacy-1", email="legacy@example.com", role=Role.IT)


# =============================================================================
# STORE AND WIRING
# =============================================================================


@pytest.fixture
def store():
    return InMemoryDataStore()


@pytest.fixture
def recorder(store):
    return AuditRecorder(store)


@pytest.fixture
def fast_retry():
    """Retries without sleeping."""
    return RetryConfig(max_attempts=3, base_delay=0, jitter=0)


@pytest.fixture
def identity(store, fast_retry):
    return SessionIdentityProvider(store, secret=TEST_JWT_SECRET, retry_config=fast_retry)


@pytest.fixture
def make_user(store):
    """
    Async factory inserting a profile plus role rows; returns the Principal.

    Usage:
        principal = await make_user("it@example.com", roles=[Role.IT])
    """
    async def _make(
        email: str,
        roles: Iterable[Role] = (Role.EMPLOYEE,),
        password: Optional[str] = TEST_PASSWORD,
        legacy_only: bool = False,
    ) -> Principal:
        roles = list(roles)
        profile = await store.insert_resource(ResourceType.PROFILE, {
            "email": email,
            "first_name": email.split("@")[0].title(),
            "last_name": "Tester",
            "role": highest_role(roles).value,
            "password_hash": hash_password(password, rounds=4) if password else None,
        })
        rows = []
        if not legacy_only:
            for role in roles:
                rows.append(await store.insert_resource(
                    ResourceType.USER_ROLE, {"user_id": profile["id"], "role": role.value}
                ))
        return Principal.from_records(profile, rows)

    return _make


@pytest.fixture
def incident_payload():
    return {
        "title": "Suspicious invoice email",
        "description": "Email asking to pay an invoice via an unknown link",
        "category": "phishing",
        "incident_date": "2024-03-01T09:30:00Z",
    }
