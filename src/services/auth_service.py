"""
Authentication Service

Email/password sign-in producing a session token, and sign-out.
"""

import logging
from typing import Optional, Tuple

from audit.event_types import AuditAction, AuditTarget
from audit.recorder import AuditRecorder
from database.store import DataStore, Query, query_with_retry
from domain.errors import UnauthenticatedError
from domain.resources import ResourceType
from rbac.context import Principal
from rbac.identity import SessionIdentityProvider
from resilience.retry import RetryConfig
from security.password import verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """Sign-in and sign-out."""

    def __init__(
        self,
        store: DataStore,
        identity: SessionIdentityProvider,
        recorder: AuditRecorder,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._store = store
        self._identity = identity
        self._recorder = recorder
        self._retry_config = retry_config

    async def sign_in(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[str, Principal]:
        """
        Verify credentials and open a session.

        Returns:
            (session token, principal)

        Raises:
            UnauthenticatedError: unknown email or wrong password
        """
        email = (email or "").strip().lower()
        rows = await query_with_retry(
            self._store,
            ResourceType.PROFILE,
            Query(filters={"email": email}, limit=1),
            self._retry_config,
        )
        profile = rows[0] if rows else None
        if profile is None or not verify_password(password, profile.get("password_hash") or ""):
            logger.info(f"Failed sign-in for {email}")
            raise UnauthenticatedError("Invalid email or password")

        principal = await self._identity.load_principal(profile["id"])
        if principal is None:
            raise UnauthenticatedError("Invalid email or password")

        token = self._identity.start_session(principal)
        logger.info(f"Principal {principal.id} signed in")

        await self._recorder.record(
            principal.id,
            AuditAction.USER_SIGNED_IN,
            AuditTarget.AUTH,
            principal.id,
            None,
            ip_address,
            user_agent,
        )
        return token, principal

    async def sign_out(
        self,
        session_token: Optional[str],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        End a session.

        Raises:
            UnauthenticatedError: the token is not a valid session
        """
        principal_id = self._identity.end_session(session_token) if session_token else None
        if principal_id is None:
            raise UnauthenticatedError()

        logger.info(f"Principal {principal_id} signed out")
        await self._recorder.record(
            principal_id,
            AuditAction.USER_SIGNED_OUT,
            AuditTarget.AUTH,
            principal_id,
            None,
            ip_address,
            user_agent,
        )
