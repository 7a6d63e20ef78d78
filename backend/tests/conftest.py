"""Shared fixtures: isolated settings, a temp snapshot store and upstream sample payloads."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from shared.config import Settings
from shared.utils.snapshot_store import SnapshotStore

ADMIN_SECRET = "s3cret"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        upstream_api_key="test-key",
        league_id="72",
        season="2025",
        competition_label="Serie B",
        snapshot_path=tmp_path / "data" / "snapshot.json",
        admin_secret=ADMIN_SECRET,
        update_interval_s=600.0,
        ws_send_timeout_s=0.2,
        metrics_enabled=False,
    )


@pytest.fixture
def store(settings: Settings) -> SnapshotStore:
    return SnapshotStore(settings=settings)


def api_football_standings(rows: Optional[list[dict[str, Any]]] = None) -> dict[str, Any]:
    """API-Football v3 /standings body."""
    if rows is None:
        rows = [
            {
                "rank": 1,
                "team": {"id": 1, "name": "Coritiba"},
                "points": 10,
                "all": {"played": 4, "win": 3, "draw": 1, "lose": 0, "goals": {"for": 7, "against": 2}},
            },
            {
                "rank": 2,
                "team": {"id": 2, "name": "Goiás"},
                "points": 7,
                "all": {"played": 4, "win": 2, "draw": 1, "lose": 1, "goals": {"for": 5, "against": 4}},
            },
            {
                "rank": 3,
                "team": {"id": 3, "name": "Paysandu"},
                "points": 4,
                "all": {"played": 4, "win": 1, "draw": 1, "lose": 2, "goals": {"for": 3, "against": 5}},
            },
        ]
    return {
        "get": "standings",
        "errors": [],
        "results": 1,
        "response": [
            {"league": {"id": 72, "name": "Serie B", "country": "Brazil", "season": 2025, "standings": [rows]}}
        ],
    }


def api_football_fixture(
    round_label: Any, home: str, away: str, status: str, goals: tuple[Any, Any] = (None, None)
) -> dict[str, Any]:
    return {
        "fixture": {"date": "2025-04-05T19:00:00+00:00", "status": {"short": status}},
        "league": {"id": 72, "season": 2025, "round": round_label},
        "teams": {"home": {"name": home}, "away": {"name": away}},
        "goals": {"home": goals[0], "away": goals[1]},
    }


def api_football_fixtures(items: Optional[list[dict[str, Any]]] = None) -> dict[str, Any]:
    """API-Football v3 /fixtures body."""
    if items is None:
        items = [
            api_football_fixture("2", "Goiás", "Paysandu", "NS"),
            api_football_fixture("1", "Coritiba", "Goiás", "FT", (2, 0)),
            api_football_fixture("1", "Paysandu", "Coritiba", "FT", (1, 1)),
            api_football_fixture("2", "Coritiba", "Paysandu", "1H", (1, 0)),
        ]
    return {"get": "fixtures", "errors": [], "results": len(items), "response": items}


@pytest.fixture
def standings_payload() -> dict[str, Any]:
    return api_football_standings()


@pytest.fixture
def fixtures_payload() -> dict[str, Any]:
    return api_football_fixtures()


class FakeWebSocket:
    """Stand-in for a server-side starlette WebSocket."""

    def __init__(self, *, connected: bool = True, send_delay: float = 0.0, fail_send: bool = False) -> None:
        state = WebSocketState.CONNECTED if connected else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.client = None
        self.sent: list[str] = []
        self.accepted = False
        self.close_code: Optional[int] = None
        self._send_delay = send_delay
        self._fail_send = fail_send
        self._incoming: asyncio.Queue[Optional[str]] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        if self._send_delay:
            await asyncio.sleep(self._send_delay)
        if self._fail_send:
            raise RuntimeError("socket broken")
        self.sent.append(text)

    async def receive_text(self) -> str:
        message = await self._incoming.get()
        if message is None:
            self.client_state = WebSocketState.DISCONNECTED
            raise WebSocketDisconnect(code=1000)
        return message

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED

    def push(self, message: Optional[str]) -> None:
        """Queue a client message; None simulates the client disconnecting."""
        self._incoming.put_nowait(message)
