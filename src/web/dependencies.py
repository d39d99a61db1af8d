"""
FastAPI dependency helpers for the application services.

Services are built once by web.app.create_app and kept on app.state.

Usage in endpoints:
    @router.get("/api/incidents")
    async def list_incidents(service: IncidentService = Depends(get_incident_service)):
        ...
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from services import AuditLogService, AuthService, IncidentService, UserService


@dataclass
class ClientMeta:
    """Request metadata recorded with audit entries."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def get_client_meta(request: Request) -> ClientMeta:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return ClientMeta(ip_address=ip, user_agent=request.headers.get("User-Agent"))


def get_incident_service(request: Request) -> IncidentService:
    return request.app.state.incidents


def get_user_service(request: Request) -> UserService:
    return request.app.state.users


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_audit_log_service(request: Request) -> AuditLogService:
    return request.app.state.audit_logs
