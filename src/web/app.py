"""
FastAPI application for the incident desk.

Routes:
- POST   /api/auth/sign-in, /api/auth/sign-out;  GET /api/auth/me
- GET    /api/incidents, /api/incidents/stats, /api/incidents/{id}
- POST   /api/incidents;  PATCH /api/incidents/{id}
- GET    /api/users, /api/users/stats, /api/users/{id}, /api/users/{id}/roles
- POST   /api/users, /api/users/{id}/roles
- PATCH  /api/users/{id};  DELETE /api/users/{id}, /api/users/{id}/roles/{role}
- GET    /api/audit-logs
- GET    /health, /health/live

Run with:
    uvicorn web.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from audit.recorder import AuditRecorder
from config.settings import Settings, get_settings, validate_startup_security
from database.seed import backfill_role_assignments, bootstrap_admin
from database.sql_store import SQLAlchemyDataStore
from database.store import DataStore
from rbac.identity import SessionIdentityProvider
from services import AuditLogService, AuthService, IncidentService, UserService
from services.logging_config import configure_logging
from web.errors import RequestIDMiddleware, register_exception_handlers
from web.routers import audit_router, auth_router, health_router, incidents_router, users_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DataStore] = None,
    configure_logs: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (default: from environment)
        store: Data store (default: SQLAlchemy store from DB_* settings).
            A store passed in is not initialized or closed by the app.
        configure_logs: Install the root log handlers
    """
    settings = settings or get_settings()
    validate_startup_security(settings)
    if configure_logs:
        configure_logging(settings.log_level, json_output=settings.log_json)

    owns_store = store is None
    if store is None:
        store = SQLAlchemyDataStore.from_settings()

    retry_config = settings.resilience.to_retry_config()
    recorder = AuditRecorder(store, enabled=settings.audit_enabled)
    identity = SessionIdentityProvider(
        store,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        session_hours=settings.jwt_expire_hours,
        retry_config=retry_config,
    )
    common = dict(retry_config=retry_config, audit_denied=settings.audit_denied_attempts)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_store:
            await store.initialize()
        await backfill_role_assignments(store)
        if settings.bootstrap_admin_email and settings.bootstrap_admin_password:
            await bootstrap_admin(
                store,
                settings.bootstrap_admin_email,
                settings.bootstrap_admin_password,
                settings.bootstrap_admin_first_name,
                settings.bootstrap_admin_last_name,
                recorder=recorder,
            )
        logger.info(f"{settings.name} started ({settings.environment})")
        yield
        if owns_store:
            await store.close()

    app = FastAPI(title=settings.name, version=settings.version, debug=settings.debug, lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.recorder = recorder
    app.state.identity = identity
    app.state.incidents = IncidentService(store, recorder, **common)
    app.state.users = UserService(store, recorder, identity=identity, **common)
    app.state.auth = AuthService(store, identity, recorder, retry_config=retry_config)
    app.state.audit_logs = AuditLogService(store, recorder, default_limit=settings.audit_log_limit, **common)

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(incidents_router)
    app.include_router(users_router)
    app.include_router(audit_router)

    return app
