"""
User Management API.

Provides endpoints for:
- Creating, listing, updating and deleting accounts (admin)
- Reading one's own profile and roles
- Assigning and revoking roles (admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from rbac.context import Principal
from rbac.dependencies import require_principal
from services import UserService
from web.dependencies import get_client_meta, get_user_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["User Management"],
    responses={404: {"description": "User not found"}},
)

# =============================================================================
# REQUEST MODELS
# =============================================================================


class UserCreate(BaseModel):
    """Request to create an account."""
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    role: str = Field(..., description="employee, it, admin")


class ProfileUpdate(BaseModel):
    """Fields to change; omitted fields stay as they are."""
    email: Optional[str] = Field(None, max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class RoleAssign(BaseModel):
    """Role to add."""
    role: str = Field(..., description="employee, it, admin")


# =============================================================================
# ACCOUNTS
# =============================================================================


@router.get("")
async def list_users(
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    users = await service.list_profiles(principal)
    return {"users": users, "count": len(users)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    meta = get_client_meta(request)
    return await service.create_user(
        principal,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )


@router.get("/stats")
async def user_stats(
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    return await service.user_stats(principal)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    return await service.get_profile(principal, user_id)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: ProfileUpdate,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    meta = get_client_meta(request)
    return await service.update_profile(
        principal, user_id, body.model_dump(exclude_unset=True), meta.ip_address, meta.user_agent
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    meta = get_client_meta(request)
    await service.delete_user(principal, user_id, meta.ip_address, meta.user_agent)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ROLES
# =============================================================================


@router.get("/{user_id}/roles")
async def list_roles(
    user_id: str,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    roles = await service.list_roles(principal, user_id)
    return {"user_id": user_id, "roles": [r.value for r in roles]}


@router.post("/{user_id}/roles", status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: str,
    body: RoleAssign,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    meta = get_client_meta(request)
    roles = await service.assign_role(principal, user_id, body.role, meta.ip_address, meta.user_agent)
    return {"user_id": user_id, "roles": [r.value for r in roles]}


@router.delete("/{user_id}/roles/{role}")
async def revoke_role(
    user_id: str,
    role: str,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: UserService = Depends(get_user_service),
):
    meta = get_client_meta(request)
    roles = await service.revoke_role(principal, user_id, role, meta.ip_address, meta.user_agent)
    return {"user_id": user_id, "roles": [r.value for r in roles]}
