"""
User Service

Account and role management. Everything except reading one's own profile
and role assignments is reserved to admins.

Role assignments live in user_roles. The legacy profiles.role column is
kept equal to the highest assigned role so older readers stay correct.
Accounts that predate user_roles hold only their legacy role until the
first assignment change writes it out as a row.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from audit.event_types import AuditAction, AuditTarget
from database.store import Query
from domain.errors import IncidentDeskError, NotFoundError, ValidationError
from domain.incident import utcnow
from domain.resources import ResourceType
from rbac.context import Principal
from rbac.identity import SessionIdentityProvider
from rbac.permissions import effective_roles
from rbac.policy import Operation
from rbac.roles import Role, highest_role, parse_role, rank
from security.password import hash_password

from .base import ServiceBase

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100


def _normalize_email(value: Any) -> str:
    if not isinstance(value, str) or "@" not in value.strip():
        raise ValidationError("A valid email address is required", field="email", value=value)
    return value.strip().lower()


def _required_name(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field, value=value)
    if len(value.strip()) > NAME_MAX_LENGTH:
        raise ValidationError(f"{field} exceeds maximum length of {NAME_MAX_LENGTH}", field=field)
    return value.strip()


def public_profile(profile: Mapping[str, Any], role_rows: Iterable[Mapping[str, Any]] = ()) -> Dict[str, Any]:
    """Profile as returned to clients; never includes the password hash."""
    principal = Principal.from_records(profile, role_rows)
    created_at = profile.get("created_at")
    updated_at = profile.get("updated_at")
    return {
        **principal.to_dict(),
        "created_at": created_at.isoformat() if created_at else None,
        "updated_at": updated_at.isoformat() if updated_at else None,
    }


class UserService(ServiceBase):
    """Profiles and role assignments."""

    def __init__(self, *args, identity: Optional[SessionIdentityProvider] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._identity = identity

    # =========================================================================
    # PROFILES
    # =========================================================================

    async def get_profile(self, principal: Optional[Principal], user_id: str) -> Dict[str, Any]:
        """Own profile, or any profile for admins."""
        await self._authorize(principal, ResourceType.PROFILE, Operation.READ, {"id": user_id})
        profile = await self._get(ResourceType.PROFILE, user_id)
        if profile is None:
            raise NotFoundError(ResourceType.PROFILE.value, user_id)
        return public_profile(profile, await self._role_rows(user_id))

    async def list_profiles(self, principal: Optional[Principal]) -> List[Dict[str, Any]]:
        """All profiles, newest first. Admin only."""
        await self._row_filter(principal, ResourceType.PROFILE)
        profiles = await self._query(ResourceType.PROFILE, Query(order_by="created_at", descending=True))

        roles_by_user = defaultdict(list)
        for row in await self._query(ResourceType.USER_ROLE):
            roles_by_user[row["user_id"]].append(row)
        return [public_profile(p, roles_by_user[p["id"]]) for p in profiles]

    async def create_user(
        self,
        principal: Optional[Principal],
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Any,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an account with one role assignment.

        All fields are required. If the role row cannot be written the
        account still exists with its legacy role; the failure is logged.
        """
        await self._authorize(principal, ResourceType.PROFILE, Operation.CREATE)

        email = _normalize_email(email)
        first_name = _required_name(first_name, "first_name")
        last_name = _required_name(last_name, "last_name")
        role = parse_role(role)
        password_hash = hash_password(password)

        existing = await self._query(ResourceType.PROFILE, Query(filters={"email": email}, limit=1))
        if existing:
            raise ValidationError(f"A user with email {email} already exists", field="email", value=email)

        profile = await self._store.insert_resource(ResourceType.PROFILE, {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "role": role.value,
            "password_hash": password_hash,
        })

        role_rows = []
        try:
            role_rows.append(await self._store.insert_resource(
                ResourceType.USER_ROLE, {"user_id": profile["id"], "role": role.value}
            ))
        except IncidentDeskError as e:
            logger.error(f"Role assignment for new user {profile['id']} failed: {e}")

        logger.info(f"User {profile['id']} ({email}) created by {principal.id} with role {role.value}")
        await self._recorder.record(
            principal.id,
            AuditAction.USER_CREATED,
            AuditTarget.USER,
            profile["id"],
            {"email": email, "role": role.value},
            ip_address,
            user_agent,
        )
        return public_profile(profile, role_rows)

    async def update_profile(
        self,
        principal: Optional[Principal],
        user_id: str,
        changes: Mapping[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Change email or names. Roles are changed through assign_role and
        revoke_role, never here.
        """
        await self._authorize(principal, ResourceType.PROFILE, Operation.UPDATE, {"id": user_id})

        unknown = set(changes) - {"email", "first_name", "last_name"}
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationError(f"{field} cannot be changed here", field=field)

        patch: Dict[str, Any] = {}
        if "email" in changes:
            patch["email"] = _normalize_email(changes["email"])
        for field in ("first_name", "last_name"):
            if field in changes:
                patch[field] = _required_name(changes[field], field)
        if not patch:
            raise ValidationError("No changes supplied")
        patch["updated_at"] = utcnow()

        profile = await self._store.update_resource(ResourceType.PROFILE, user_id, patch)
        self._invalidate(user_id)

        await self._recorder.record(
            principal.id,
            AuditAction.USER_UPDATED,
            AuditTarget.USER,
            user_id,
            {"fields": sorted(k for k in patch if k != "updated_at")},
            ip_address,
            user_agent,
        )
        return public_profile(profile, await self._role_rows(user_id))

    async def delete_user(
        self,
        principal: Optional[Principal],
        user_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Delete an account: role rows first, then the profile."""
        await self._authorize(principal, ResourceType.PROFILE, Operation.DELETE, {"id": user_id})
        profile = await self._get(ResourceType.PROFILE, user_id)
        if profile is None:
            raise NotFoundError(ResourceType.PROFILE.value, user_id)

        removed = await self._store.delete_where(ResourceType.USER_ROLE, {"user_id": user_id})
        await self._store.delete_resource(ResourceType.PROFILE, user_id)
        self._invalidate(user_id)
        logger.info(f"User {user_id} deleted by {principal.id} ({removed} role rows removed)")

        await self._recorder.record(
            principal.id,
            AuditAction.USER_DELETED,
            AuditTarget.USER,
            user_id,
            {"email": profile.get("email"), "roles_removed": removed},
            ip_address,
            user_agent,
        )

    async def user_stats(self, principal: Optional[Principal]) -> Dict[str, int]:
        """Number of users by highest effective role. Admin only."""
        profiles = await self.list_profiles(principal)
        stats = {"total": len(profiles)}
        for role in Role:
            stats[role.value] = 0
        for profile in profiles:
            if profile["roles"]:
                top = highest_role(Role(r) for r in profile["roles"])
                stats[top.value] += 1
        return stats

    # =========================================================================
    # ROLE ASSIGNMENTS
    # =========================================================================

    async def list_roles(self, principal: Optional[Principal], user_id: str) -> List[Role]:
        """Effective roles of a user, least privileged first."""
        await self._authorize(principal, ResourceType.USER_ROLE, Operation.READ, {"user_id": user_id})
        profile = await self._get(ResourceType.PROFILE, user_id)
        if profile is None:
            raise NotFoundError(ResourceType.PROFILE.value, user_id)
        holder = Principal.from_records(profile, await self._role_rows(user_id))
        return sorted(effective_roles(holder), key=rank)

    async def assign_role(
        self,
        principal: Optional[Principal],
        user_id: str,
        role: Any,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> List[Role]:
        """
        Add a role assignment.

        Raises:
            ValidationError: unknown role, or the user already holds it
            NotFoundError: no such user
        """
        await self._authorize(principal, ResourceType.USER_ROLE, Operation.CREATE, {"user_id": user_id})
        role = parse_role(role)
        profile = await self._get(ResourceType.PROFILE, user_id)
        if profile is None:
            raise NotFoundError(ResourceType.PROFILE.value, user_id)

        rows = await self._role_rows(user_id)
        held = set(effective_roles(Principal.from_records(profile, rows)))
        if role in held:
            raise ValidationError(f"User already has role {role.value}", field="role", value=role.value)

        if not rows:
            await self._materialize_legacy_role(profile, held)
        await self._store.insert_resource(ResourceType.USER_ROLE, {"user_id": user_id, "role": role.value})
        held.add(role)
        await self._sync_legacy_role(profile, held)
        self._invalidate(user_id)

        await self._recorder.record(
            principal.id,
            AuditAction.ROLE_ASSIGNED,
            AuditTarget.USER,
            user_id,
            {"role": role.value},
            ip_address,
            user_agent,
        )
        return sorted(held, key=rank)

    async def revoke_role(
        self,
        principal: Optional[Principal],
        user_id: str,
        role: Any,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> List[Role]:
        """
        Remove a role assignment.

        Raises:
            NotFoundError: the user does not hold the role
            ValidationError: it is the user's last role
        """
        await self._authorize(principal, ResourceType.USER_ROLE, Operation.DELETE, {"user_id": user_id})
        role = parse_role(role)
        profile = await self._get(ResourceType.PROFILE, user_id)
        if profile is None:
            raise NotFoundError(ResourceType.PROFILE.value, user_id)

        rows = await self._role_rows(user_id)
        held = effective_roles(Principal.from_records(profile, rows))
        if role not in held:
            raise NotFoundError(ResourceType.USER_ROLE.value, f"{user_id}/{role.value}")
        if len(held) == 1:
            raise ValidationError("Cannot revoke a user's last role", field="role", value=role.value)
        match = next(r for r in rows if r["role"] == role.value)

        await self._store.delete_resource(ResourceType.USER_ROLE, match["id"])
        held = {parse_role(r["role"]) for r in rows if r["id"] != match["id"]}
        await self._sync_legacy_role(profile, held)
        self._invalidate(user_id)

        await self._recorder.record(
            principal.id,
            AuditAction.ROLE_REVOKED,
            AuditTarget.USER,
            user_id,
            {"role": role.value},
            ip_address,
            user_agent,
        )
        return sorted(held, key=rank)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _role_rows(self, user_id: str) -> List[Dict[str, Any]]:
        return await self._query(ResourceType.USER_ROLE, Query(filters={"user_id": user_id}))

    async def _materialize_legacy_role(self, profile: Mapping[str, Any], held: Iterable[Role]) -> None:
        # An account with no assignment rows holds only its legacy role.
        for legacy in held:
            await self._store.insert_resource(
                ResourceType.USER_ROLE, {"user_id": profile["id"], "role": legacy.value}
            )

    async def _sync_legacy_role(self, profile: Mapping[str, Any], held) -> None:
        top = highest_role(held)
        if profile.get("role") != top.value:
            await self._store.update_resource(
                ResourceType.PROFILE, profile["id"], {"role": top.value, "updated_at": utcnow()}
            )

    def _invalidate(self, user_id: str) -> None:
        if self._identity is not None:
            self._identity.invalidate_principal(user_id)
