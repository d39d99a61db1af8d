"""
Authentication API.

Provides endpoints for:
- Signing in with email and password
- Signing out of the current session
- Reading the signed-in principal
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from rbac.context import Principal
from rbac.dependencies import get_session_token, require_principal
from services import AuthService
from web.dependencies import get_auth_service, get_client_meta

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"],
)


class SignInRequest(BaseModel):
    """Email/password credentials."""
    email: str = Field(..., min_length=3, max_length=255, description="Account email")
    password: str = Field(..., min_length=1, max_length=128, description="Account password")


@router.post("/sign-in")
async def sign_in(
    body: SignInRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    """Open a session; returns a bearer token."""
    meta = get_client_meta(request)
    token, principal = await service.sign_in(body.email, body.password, meta.ip_address, meta.user_agent)
    return {
        "access_token": token,
        "token_type": "bearer",
        "principal": principal.to_dict(),
    }


@router.post("/sign-out")
async def sign_out(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
):
    """End the current session."""
    meta = get_client_meta(request)
    await service.sign_out(token, meta.ip_address, meta.user_agent)
    return {"status": "signed_out"}


@router.get("/me")
async def me(principal: Principal = Depends(require_principal)):
    """The signed-in principal and its effective roles."""
    return principal.to_dict()
