"""
FastAPI application factory for the LeagueFeed service.

Creates the app with:
- Snapshot routes (GET /data, admin POST /force-update and POST /update)
- WebSocket endpoint (/ws) pushing the snapshot to subscribers
- Middleware stack
- Health check endpoint
- Lifespan management: builds the store, provider, broadcaster and
  scheduler, starts the update loop, and tears everything down on shutdown
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, WebSocket

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.snapshot_store import SnapshotStore

from api.dependencies import get_ws_manager, init_dependencies
from api.middleware import setup_middleware
from api.routes.data import router as data_router
from api.ws.manager import build_ws_manager
from ingest.providers.api_football import ApiFootballProvider
from scheduler.service import SchedulerService, UpdatePipeline

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing; tests attach components with init_dependencies."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Wires components, starts the scheduler, and shuts down gracefully.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    setup_logging("api", settings)
    start_metrics_server(settings=settings)

    store = SnapshotStore(settings=settings)
    ws_manager = build_ws_manager(store, settings)
    provider = ApiFootballProvider(settings)
    await provider.start()

    pipeline = UpdatePipeline(provider, store, ws_manager, settings)
    scheduler = SchedulerService(pipeline, settings)
    init_dependencies(app, store, ws_manager, pipeline, scheduler, settings)

    scheduler.start()
    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        league_id=settings.league_id,
        season=settings.season,
        snapshot_path=str(store.path),
        api_key_configured=bool(settings.upstream_api_key),
        admin_enabled=bool(settings.admin_secret),
    )

    yield

    await scheduler.stop()
    await ws_manager.stop()
    await provider.close()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="LeagueFeed",
        description="League standings and fixtures relay with real-time push",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url=None,
    )
    if settings is not None:
        app.state.settings = settings

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(data_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, Any]:
        store = getattr(app.state, "store", None)
        ws_manager = getattr(app.state, "ws_manager", None)
        scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "ok",
            "service": "api",
            "has_snapshot": bool(store and store.exists()),
            "subscribers": ws_manager.connection_count if ws_manager else 0,
            "last_success_at": scheduler.last_success_at if scheduler else None,
            "last_error": scheduler.last_error if scheduler else None,
        }

    # WebSocket endpoint
    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None:
        """
        Real-time snapshot channel.

        The server sends the current snapshot on connect (if one exists) and
        again after every successful update. Client messages are ignored.
        """
        try:
            manager = get_ws_manager(ws)
        except RuntimeError:
            await ws.close(code=1013, reason="service_unavailable")
            return
        await manager.handle_connection(ws)

    return app


# For running with uvicorn directly
app = create_app()
