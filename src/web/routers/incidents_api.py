"""
Incidents API.

Provides endpoints for:
- Reporting incidents (any signed-in principal)
- Listing and reading incidents (own incidents, or all for it/admin)
- Triage status updates (it role)
- Status counts for the dashboard
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from rbac.context import Principal
from rbac.dependencies import require_principal
from services import IncidentService
from services.incident_service import UNSET
from web.dependencies import get_client_meta, get_incident_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/incidents",
    tags=["Incidents"],
    responses={404: {"description": "Incident not found"}},
)

# =============================================================================
# REQUEST MODELS
# =============================================================================


class IncidentCreate(BaseModel):
    """Request to report a new incident."""
    title: str = Field(..., description="Short summary")
    description: str = Field(..., description="What happened")
    category: str = Field(..., description="phishing, malware, unauthorized_access, data_loss, other")
    incident_date: str = Field(..., description="When it happened (ISO-8601)")
    attachment_url: Optional[str] = Field(None, description="Link to evidence")


class IncidentUpdate(BaseModel):
    """Triage update. Omit assigned_to to leave it unchanged; send null to clear it."""
    status: str = Field(..., description="new, in_progress, resolved")
    resolution_comment: Optional[str] = Field(None, max_length=10000)
    assigned_to: Optional[str] = Field(None, description="Profile id of the assignee")


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get("")
async def list_incidents(
    search: Optional[str] = Query(None, max_length=200),
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    principal: Principal = Depends(require_principal),
    service: IncidentService = Depends(get_incident_service),
):
    """Incidents visible to the caller, newest first."""
    incidents = await service.list_incidents(principal, search, status_filter, category, limit)
    return {
        "incidents": [i.to_dict() for i in incidents],
        "count": len(incidents),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_incident(
    body: IncidentCreate,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: IncidentService = Depends(get_incident_service),
):
    meta = get_client_meta(request)
    incident = await service.create_incident(principal, body.model_dump(), meta.ip_address, meta.user_agent)
    return incident.to_dict()


@router.get("/stats")
async def incident_stats(
    principal: Principal = Depends(require_principal),
    service: IncidentService = Depends(get_incident_service),
):
    return await service.incident_stats(principal)


@router.get("/{incident_id}")
async def get_incident(
    incident_id: str,
    principal: Principal = Depends(require_principal),
    service: IncidentService = Depends(get_incident_service),
):
    incident = await service.get_incident(principal, incident_id)
    return incident.to_dict()


@router.patch("/{incident_id}")
async def update_incident(
    incident_id: str,
    body: IncidentUpdate,
    request: Request,
    principal: Principal = Depends(require_principal),
    service: IncidentService = Depends(get_incident_service),
):
    """Change status, add a resolution comment, (re)assign."""
    meta = get_client_meta(request)
    assigned_to = body.assigned_to if "assigned_to" in body.model_fields_set else UNSET
    incident = await service.update_incident(
        principal,
        incident_id,
        body.status,
        resolution_comment=body.resolution_comment,
        assigned_to=assigned_to,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    return incident.to_dict()
