"""
FastAPI Routers - one module per resource.

- auth_api: sign-in, sign-out, current principal
- incidents_api: incident reporting and triage
- users_api: accounts and role assignments
- audit_api: audit trail review
- health: health checks
"""

from .auth_api import router as auth_router
from .incidents_api import router as incidents_router
from .users_api import router as users_router
from .audit_api import router as audit_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "incidents_router",
    "users_router",
    "audit_router",
    "health_router",
]
