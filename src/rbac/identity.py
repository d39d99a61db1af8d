"""
Identity Provider

Resolves a session token to the Principal making the request.

Sessions are signed JWTs (see rbac.jwt). Resolved principals are cached per
session id (jti) so a request does not reload the profile and role rows
every time. The cache entry is dropped on sign-out and invalidated for a
principal whenever its roles change or its profile is deleted; the next
request then reloads from the store.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from database.store import DataStore, Query, get_with_retry, query_with_retry
from domain.resources import ResourceType
from resilience.retry import RetryConfig

from .context import Principal
from .jwt import JWT_ALGORITHM, create_session_token, decode_session_token_safe

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Abstract source of the current principal."""

    @abstractmethod
    async def get_current_principal(self, session_token: Optional[str]) -> Optional[Principal]:
        """Return the principal for a session token, or None."""
        pass


# =============================================================================
# SESSION CACHE
# =============================================================================

class SessionCache:
    """Lock-protected map of session id to resolved principal."""

    def __init__(self):
        self._principals: Dict[str, Principal] = {}
        self._revoked: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[Principal]:
        with self._lock:
            return self._principals.get(session_id)

    def put(self, session_id: str, principal: Principal) -> None:
        with self._lock:
            self._principals[session_id] = principal

    def revoke(self, session_id: str, expires_at: datetime) -> None:
        """Drop the session and refuse its token until it expires."""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._principals.pop(session_id, None)
            self._revoked[session_id] = expires_at
            for sid in [s for s, exp in self._revoked.items() if exp < now]:
                del self._revoked[sid]

    def is_revoked(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._revoked

    def invalidate_principal(self, principal_id: str) -> int:
        """Forget every cached copy of a principal. Returns entries removed."""
        with self._lock:
            stale = [sid for sid, p in self._principals.items() if p.id == principal_id]
            for sid in stale:
                del self._principals[sid]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._principals)


# =============================================================================
# SESSION IDENTITY PROVIDER
# =============================================================================

class SessionIdentityProvider(IdentityProvider):
    """
    Identity provider backed by JWT sessions and the data store.

    Usage:
        identity = SessionIdentityProvider(store, secret=settings.jwt_secret)
        token = identity.start_session(principal)
        principal = await identity.get_current_principal(token)
    """

    def __init__(
        self,
        store: DataStore,
        secret: str,
        algorithm: str = JWT_ALGORITHM,
        session_hours: int = 8,
        retry_config: Optional[RetryConfig] = None,
        cache: Optional[SessionCache] = None,
    ):
        self._store = store
        self._secret = secret
        self._algorithm = algorithm
        self._session_lifetime = timedelta(hours=session_hours)
        self._retry_config = retry_config
        self.cache = cache or SessionCache()

    async def load_principal(self, principal_id: str) -> Optional[Principal]:
        """
        Build a principal from its profile and role rows.

        Returns None if the profile no longer exists.
        """
        profile = await get_with_retry(self._store, ResourceType.PROFILE, principal_id, self._retry_config)
        if profile is None:
            return None
        role_rows = await query_with_retry(
            self._store,
            ResourceType.USER_ROLE,
            Query(filters={"user_id": str(principal_id)}),
            self._retry_config,
        )
        return Principal.from_records(profile, role_rows)

    def start_session(self, principal: Principal) -> str:
        """Issue a session token and cache the principal under it."""
        token = create_session_token(
            principal.id,
            principal.email,
            self._secret,
            expires_delta=self._session_lifetime,
            algorithm=self._algorithm,
        )
        payload = decode_session_token_safe(token, self._secret, self._algorithm)
        self.cache.put(payload["jti"], principal)
        return token

    async def get_current_principal(self, session_token: Optional[str]) -> Optional[Principal]:
        if not session_token:
            return None

        payload = decode_session_token_safe(session_token, self._secret, self._algorithm)
        if payload is None:
            logger.debug("Rejected invalid or expired session token")
            return None

        session_id = payload["jti"]
        if self.cache.is_revoked(session_id):
            return None

        principal = self.cache.get(session_id)
        if principal is not None:
            return principal

        principal = await self.load_principal(payload["sub"])
        if principal is None:
            logger.info(f"Session {session_id} refers to missing profile {payload['sub']}")
            return None

        self.cache.put(session_id, principal)
        return principal

    def end_session(self, session_token: str) -> Optional[str]:
        """
        Revoke a session.

        Returns:
            The principal id the session belonged to, or None if the token
            was not a valid session.
        """
        payload = decode_session_token_safe(session_token, self._secret, self._algorithm)
        if payload is None:
            return None
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        self.cache.revoke(payload["jti"], expires_at)
        return payload["sub"]

    def invalidate_principal(self, principal_id: str) -> None:
        removed = self.cache.invalidate_principal(principal_id)
        if removed:
            logger.debug(f"Invalidated {removed} cached sessions for {principal_id}")
