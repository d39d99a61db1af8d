"""
API Error Responses.

Maps domain errors to HTTP status codes and a single JSON shape:

    {"error": {"code": "...", "message": "...", "details": {...}},
     "request_id": "..."}

Usage:
    from web.errors import register_exception_handlers
    register_exception_handlers(app)
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from domain.errors import (
    AuthorizationError,
    IncidentDeskError,
    NotFoundError,
    StoreError,
    UnauthenticatedError,
    ValidationError,
)
from services.logging_config import request_id_var

logger = logging.getLogger(__name__)


STATUS_BY_ERROR = (
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)

CODE_BY_STATUS = {
    400: "VALIDATION_ERROR",
    401: "AUTH_REQUIRED",
    403: "AUTH_INSUFFICIENT_PERMISSIONS",
    404: "RESOURCE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "SERVICE_UNAVAILABLE",
}


def status_for(exc: IncidentDeskError) -> int:
    """HTTP status code for a domain error."""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def get_request_id(request: Request) -> str:
    """Get or generate request ID for tracking."""
    request_id = request.headers.get("X-Request-ID")
    if not request_id:
        request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid.uuid4())
    return request_id


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    request_id = get_request_id(request)
    headers = {"X-Request-ID": request_id}
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "details": details or {}},
            "request_id": request_id,
        },
        headers=headers,
    )


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""

    @app.exception_handler(IncidentDeskError)
    async def domain_error_handler(request: Request, exc: IncidentDeskError) -> JSONResponse:
        status_code = status_for(exc)
        log_level = logging.WARNING if status_code >= 500 else logging.DEBUG
        logger.log(log_level, f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
        return error_response(request, status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        field_errors = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            field_errors.append({
                "field": field_path or "body",
                "message": error["msg"],
            })

        logger.debug(f"Request validation failed on {request.url.path}: {len(field_errors)} field(s)")
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            ValidationError.code,
            "Request validation failed",
            {"field": field_errors[0]["field"] if field_errors else None, "errors": field_errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(
            request,
            exc.status_code,
            CODE_BY_STATUS.get(exc.status_code, "HTTP_ERROR"),
            str(exc.detail) if exc.detail else "An error occurred",
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Never expose internal error details to clients."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
            exc_info=True,
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "SERVER_INTERNAL_ERROR",
            "An unexpected error occurred. Please try again later.",
        )


# =============================================================================
# REQUEST ID MIDDLEWARE
# =============================================================================


class RequestIDMiddleware:
    """Tag every request with an id, echoed back in X-Request-ID and logs."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        token = request_id_var.set(request_id)

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response_headers = [(k, v) for k, v in message.get("headers", []) if k.lower() != b"x-request-id"]
                response_headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            request_id_var.reset(token)
