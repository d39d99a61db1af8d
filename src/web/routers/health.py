"""
Health Check Endpoints

Provides:
1. /health - Application and store status
2. /health/live - Simple liveness probe
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from database.sql_store import SQLAlchemyDataStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = datetime.now(timezone.utc)


@router.get("/health")
async def health(request: Request):
    """Report whether the store answers; 503 when it does not."""
    settings = request.app.state.settings
    store = request.app.state.store

    store_status = "healthy"
    if isinstance(store, SQLAlchemyDataStore):
        store_status = "healthy" if await store.ping() else "unhealthy"

    body = {
        "status": store_status,
        "service": settings.name,
        "version": settings.version,
        "environment": settings.environment,
        "store": type(store).__name__,
        "uptime_seconds": int((datetime.now(timezone.utc) - _start_time).total_seconds()),
    }
    return JSONResponse(status_code=200 if store_status == "healthy" else 503, content=body)


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}
