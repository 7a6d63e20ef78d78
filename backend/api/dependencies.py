"""
Dependency injection for the API service.
Components are built once by the app factory and stored on app.state;
these providers hand them to route handlers.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from starlette.requests import HTTPConnection

from shared.config import Settings, get_settings
from shared.utils.snapshot_store import SnapshotStore

from api.ws.manager import WebSocketManager
from scheduler.service import SchedulerService, UpdatePipeline


def init_dependencies(
    app: Any,
    store: SnapshotStore,
    ws_manager: WebSocketManager,
    pipeline: UpdatePipeline,
    scheduler: SchedulerService,
    settings: Settings | None = None,
) -> None:
    """Attach the service components to the application. Called once at startup."""
    app.state.settings = settings or get_settings()
    app.state.store = store
    app.state.ws_manager = ws_manager
    app.state.pipeline = pipeline
    app.state.scheduler = scheduler


def _component(conn: HTTPConnection, name: str) -> Any:
    value = getattr(conn.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized; call init_dependencies first")
    return value


def get_app_settings(request: Request) -> Settings:
    """FastAPI dependency: settings bound to this app, falling back to the process settings."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_store(request: Request) -> SnapshotStore:
    """FastAPI dependency: returns the shared SnapshotStore."""
    return _component(request, "store")


def get_pipeline(request: Request) -> UpdatePipeline:
    """FastAPI dependency: returns the shared UpdatePipeline."""
    return _component(request, "pipeline")


def get_scheduler(request: Request) -> SchedulerService:
    """FastAPI dependency: returns the shared SchedulerService."""
    return _component(request, "scheduler")


def get_ws_manager(conn: HTTPConnection) -> WebSocketManager:
    """Returns the shared WebSocketManager (usable from HTTP and WebSocket handlers)."""
    return _component(conn, "ws_manager")
