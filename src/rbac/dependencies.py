"""
FastAPI Dependencies

Resolve the acting principal from the bearer token.

Usage:
    from rbac.dependencies import require_principal

    @router.get("/me")
    async def me(principal: Principal = Depends(require_principal)):
        return principal.to_dict()

Route handlers only resolve the principal. Every decision about what that
principal may do is made by rbac.policy inside the service layer.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from domain.errors import UnauthenticatedError
from services.logging_config import user_id_var

from .context import Principal

logger = logging.getLogger(__name__)


# =============================================================================
# HTTP BEARER SECURITY
# =============================================================================

security = HTTPBearer(auto_error=False)


async def get_session_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Raw bearer token, if any."""
    return credentials.credentials if credentials is not None else None


async def get_principal(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
) -> Optional[Principal]:
    """
    Resolve the principal for the current request.

    Does NOT enforce authentication; use require_principal for that.
    """
    if hasattr(request.state, "principal"):
        return request.state.principal

    principal = await request.app.state.identity.get_current_principal(token)
    request.state.principal = principal
    if principal is not None:
        user_id_var.set(principal.id)
    return principal


async def require_principal(
    principal: Optional[Principal] = Depends(get_principal),
) -> Principal:
    """
    Require an authenticated principal.

    Raises:
        UnauthenticatedError: no valid session (rendered as 401)
    """
    if principal is None:
        raise UnauthenticatedError()
    return principal
