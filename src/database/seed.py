"""
Startup seeding and role migration.

bootstrap_admin creates the first administrator so a fresh deployment can
be managed at all. backfill_role_assignments brings older profiles, which
only carry the legacy role column, into the user_roles table.
"""

import logging
from typing import Optional

from audit.event_types import AuditAction, AuditTarget
from audit.recorder import AuditRecorder
from domain.resources import ResourceType
from rbac.roles import Role, parse_role
from security.password import hash_password

from .store import DataStore, Query

logger = logging.getLogger(__name__)


async def bootstrap_admin(
    store: DataStore,
    email: str,
    password: str,
    first_name: str = "Admin",
    last_name: str = "User",
    recorder: Optional[AuditRecorder] = None,
) -> Optional[str]:
    """
    Create an admin profile unless one with this email already exists.

    Returns:
        The new profile id, or None when nothing was created.
    """
    email = email.strip().lower()
    existing = await store.query_resource(ResourceType.PROFILE, Query(filters={"email": email}, limit=1))
    if existing:
        logger.debug(f"Bootstrap admin {email} already present")
        return None

    profile = await store.insert_resource(ResourceType.PROFILE, {
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
        "role": Role.ADMIN.value,
        "password_hash": hash_password(password),
    })
    await store.insert_resource(ResourceType.USER_ROLE, {
        "user_id": profile["id"],
        "role": Role.ADMIN.value,
    })
    logger.info(f"Created bootstrap admin {email}")

    if recorder is not None:
        await recorder.record(
            None,
            AuditAction.USER_CREATED,
            AuditTarget.USER,
            profile["id"],
            {"email": email, "role": Role.ADMIN.value, "source": "bootstrap"},
        )
    return profile["id"]


async def backfill_role_assignments(store: DataStore) -> int:
    """
    Insert a user_roles row from the legacy role for every profile that has
    no role rows yet.

    Returns:
        Number of role rows inserted.
    """
    profiles = await store.query_resource(ResourceType.PROFILE)
    assigned = {row["user_id"] for row in await store.query_resource(ResourceType.USER_ROLE)}

    inserted = 0
    for profile in profiles:
        if profile["id"] in assigned or not profile.get("role"):
            continue
        role = parse_role(profile["role"])
        await store.insert_resource(ResourceType.USER_ROLE, {"user_id": profile["id"], "role": role.value})
        inserted += 1

    if inserted:
        logger.info(f"Backfilled {inserted} role assignments from legacy roles")
    return inserted
