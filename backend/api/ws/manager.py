"""
WebSocket connection manager for LeagueFeed.

Publish-only fan-out of the current snapshot:
- Replay-on-connect: a new subscriber gets the stored snapshot immediately
- Every successful pipeline run is pushed to all open connections
- Per-send timeout so one slow subscriber cannot hold up the others
- Subscribers carry no state across reconnects
"""
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterator

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import WS_CONNECTIONS, WS_MESSAGES_SENT
from shared.utils.snapshot_store import SnapshotStore

logger = get_logger(__name__)


@dataclass
class WSConnection:
    """Represents a single WebSocket subscriber."""

    ws: WebSocket
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: float = field(default_factory=time.monotonic)
    remote_addr: str = ""

    @property
    def alive_seconds(self) -> float:
        return time.monotonic() - self.created_at

    @property
    def is_open(self) -> bool:
        return (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        )


class SubscriberRegistry:
    """The set of currently connected subscribers."""

    def __init__(self) -> None:
        self._connections: dict[str, WSConnection] = {}

    def add(self, conn: WSConnection) -> None:
        self._connections[conn.connection_id] = conn

    def remove(self, conn: WSConnection) -> bool:
        """Drop a subscriber. Returns False if it was not registered."""
        return self._connections.pop(conn.connection_id, None) is not None

    def for_each(self, fn: Callable[[WSConnection], None]) -> None:
        for conn in list(self._connections.values()):
            fn(conn)

    def __iter__(self) -> Iterator[WSConnection]:
        return iter(list(self._connections.values()))

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        return isinstance(conn, WSConnection) and conn.connection_id in self._connections


class WebSocketManager:
    """
    Manages all WebSocket subscribers for this process.

    The registry and the snapshot store are injected so tests and the app
    factory decide their lifetime.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        store: SnapshotStore,
        settings: Settings | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._settings = settings or get_settings()
        self._shutdown = asyncio.Event()

    @property
    def connection_count(self) -> int:
        """Current number of active connections."""
        return len(self._registry)

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    async def stop(self) -> None:
        """Close all connections."""
        self._shutdown.set()
        for conn in self._registry:
            await self._close_connection(conn, code=1001, reason="server_shutdown")
        logger.info("ws_manager_stopped")

    async def handle_connection(self, ws: WebSocket) -> None:
        """
        Handle a subscriber's lifecycle.

        Accepts the connection, replays the current snapshot, then drains
        client messages (which carry no meaning) until disconnect.
        """
        await ws.accept()

        conn = WSConnection(
            ws=ws,
            remote_addr=f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown",
        )
        self._registry.add(conn)
        WS_CONNECTIONS.inc()

        logger.info(
            "ws_connected",
            connection_id=conn.connection_id,
            remote_addr=conn.remote_addr,
            subscribers=len(self._registry),
        )

        await self._send_replay(conn)

        try:
            while not self._shutdown.is_set():
                await ws.receive_text()
        except WebSocketDisconnect:
            pass
        except Exception as exc:
            logger.warning(
                "ws_connection_error",
                connection_id=conn.connection_id,
                error=str(exc),
            )
        finally:
            self._cleanup_connection(conn)

    async def _send_replay(self, conn: WSConnection) -> None:
        """Send the stored snapshot to a newly joined subscriber, if one exists."""
        text = self._store.read_text()
        if text is None:
            logger.debug("ws_replay_skipped_no_snapshot", connection_id=conn.connection_id)
            return
        if await self._send(conn, text):
            logger.debug("ws_replay_sent", connection_id=conn.connection_id)

    async def publish(self, text: str) -> int:
        """
        Send the same serialized snapshot to every open subscriber.

        Connections that are not open are skipped; failed or timed-out sends
        are dropped silently.

        Returns:
            Number of subscribers the message was delivered to.
        """
        targets = [conn for conn in self._registry if conn.is_open]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._send(conn, text) for conn in targets),
            return_exceptions=True,
        )
        delivered = sum(1 for r in results if r is True)
        WS_MESSAGES_SENT.inc(delivered)
        logger.info(
            "ws_snapshot_published",
            delivered=delivered,
            skipped=len(self._registry) - delivered,
        )
        return delivered

    async def _send(self, conn: WSConnection, text: str) -> bool:
        """Send text to one subscriber within the configured timeout."""
        if not conn.is_open:
            return False
        try:
            await asyncio.wait_for(conn.ws.send_text(text), timeout=self._settings.ws_send_timeout_s)
            return True
        except Exception as exc:
            logger.debug(
                "ws_send_error",
                connection_id=conn.connection_id,
                error=str(exc) or exc.__class__.__name__,
            )
            return False

    async def _close_connection(
        self, conn: WSConnection, code: int = 1000, reason: str = ""
    ) -> None:
        """Close a WebSocket connection and clean up."""
        try:
            if conn.is_open:
                await conn.ws.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("ws_close_error", connection_id=conn.connection_id, error=str(exc))
        self._cleanup_connection(conn)

    def _cleanup_connection(self, conn: WSConnection) -> None:
        """Remove a connection from the registry."""
        if not self._registry.remove(conn):
            return
        WS_CONNECTIONS.dec()
        logger.info(
            "ws_disconnected",
            connection_id=conn.connection_id,
            alive_seconds=round(conn.alive_seconds, 1),
            subscribers=len(self._registry),
        )


def build_ws_manager(store: SnapshotStore, settings: Settings | None = None) -> WebSocketManager:
    """Manager with a fresh, empty registry."""
    return WebSocketManager(SubscriberRegistry(), store, settings)
