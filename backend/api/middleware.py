"""
API middleware stack.

- Request ID (X-Request-ID header), bound into the structlog context so
  pipeline logs emitted while serving /force-update carry it
- One structured access log line per request; admin routes are flagged
- Exception handlers rendering {"error": ...} bodies
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.errors import AdminUnauthorized, LeagueFeedError
from shared.utils.logging import get_logger

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/health", "/metrics"})
ADMIN_PATHS = frozenset({"/force-update", "/update"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, echoed back in X-Request-ID."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log: method, path, status and duration for every non-probe request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            log = logger.warning if status >= 500 else logger.info
            log(
                "http_request",
                method=request.method,
                path=path,
                status=status,
                admin=path in ADMIN_PATHS,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                client=request.client.host if request.client else "unknown",
            )


def setup_exception_handlers(app: FastAPI) -> None:
    """Map service errors to JSON bodies of the form {"error": message}."""

    @app.exception_handler(AdminUnauthorized)
    async def admin_unauthorized_handler(request: Request, exc: AdminUnauthorized) -> JSONResponse:
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(LeagueFeedError)
    async def service_error_handler(request: Request, exc: LeagueFeedError) -> JSONResponse:
        logger.error("service_error", path=request.url.path, kind=exc.__class__.__name__, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An unexpected error occurred", "request_id": request_id},
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "Resource not found"})


def setup_cors(app: FastAPI) -> None:
    """Browsers read /data cross-origin; the admin routes are POST."""
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app in the correct order."""
    # Starlette runs the last-added middleware first, so request logging
    # sits inside the request-ID scope.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors(app)
    setup_exception_handlers(app)
