"""
Unit tests for the update pipeline and the scheduler loop.

Run: pytest backend/tests/test_scheduler.py -v
"""
from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ingest.providers.base import UpstreamPayload
from scheduler.service import SchedulerService, UpdatePipeline
from shared.config import Settings
from shared.errors import ConfigurationError, PersistenceFailure, UpstreamUnavailable
from shared.models.enums import PipelineTrigger
from shared.utils.snapshot_store import SnapshotStore

from conftest import api_football_fixtures, api_football_standings


@pytest.fixture
def mock_provider() -> MagicMock:
    provider = MagicMock()
    provider.fetch_all = AsyncMock(
        return_value=UpstreamPayload(api_football_standings(), api_football_fixtures())
    )
    return provider


@pytest.fixture
def mock_ws() -> MagicMock:
    ws = MagicMock()
    ws.publish = AsyncMock(return_value=2)
    return ws


@pytest.fixture
def pipeline(
    mock_provider: MagicMock, store: SnapshotStore, mock_ws: MagicMock, settings: Settings
) -> UpdatePipeline:
    return UpdatePipeline(mock_provider, store, mock_ws, settings)


# ── UpdatePipeline ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_persists_and_publishes_same_text(
    pipeline: UpdatePipeline, store: SnapshotStore, mock_ws: MagicMock, mock_provider: MagicMock
) -> None:
    snapshot = await pipeline.run(PipelineTrigger.MANUAL)

    mock_provider.fetch_all.assert_awaited_once_with("72", "2025")
    on_disk = store.read_text()
    mock_ws.publish.assert_awaited_once_with(on_disk)
    assert json.loads(on_disk) == snapshot.to_payload()
    assert snapshot.current_round == "2"


@pytest.mark.asyncio
async def test_upstream_failure_keeps_previous_snapshot(
    pipeline: UpdatePipeline, store: SnapshotStore, mock_ws: MagicMock, mock_provider: MagicMock
) -> None:
    previous = store.write({"competition": "previous"})
    mock_provider.fetch_all.side_effect = UpstreamUnavailable("/fixtures", 500, "Internal Server Error")

    with pytest.raises(UpstreamUnavailable):
        await pipeline.run(PipelineTrigger.SCHEDULED)

    assert store.read_text() == previous
    mock_ws.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_persistence_failure_is_not_broadcast(
    pipeline: UpdatePipeline, mock_ws: MagicMock
) -> None:
    with patch.object(SnapshotStore, "write", side_effect=PersistenceFailure("read-only fs")):
        with pytest.raises(PersistenceFailure):
            await pipeline.run(PipelineTrigger.SCHEDULED)

    mock_ws.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_league_configuration_aborts(
    mock_provider: MagicMock, store: SnapshotStore, mock_ws: MagicMock, settings: Settings
) -> None:
    unconfigured = settings.model_copy(update={"league_id": ""})
    pipeline = UpdatePipeline(mock_provider, store, mock_ws, unconfigured)

    with pytest.raises(ConfigurationError):
        await pipeline.run(PipelineTrigger.SCHEDULED)

    mock_provider.fetch_all.assert_not_awaited()


@pytest.mark.asyncio
async def test_replace_stores_body_verbatim_and_publishes(
    pipeline: UpdatePipeline, store: SnapshotStore, mock_ws: MagicMock, mock_provider: MagicMock
) -> None:
    body: dict[str, Any] = {"anything": ["goes", 1, None]}

    delivered = await pipeline.replace(body)

    assert delivered == 2
    assert store.read() == body
    mock_ws.publish.assert_awaited_once_with(store.read_text())
    mock_provider.fetch_all.assert_not_awaited()


@pytest.mark.asyncio
async def test_rebroadcast_resends_stored_text(
    pipeline: UpdatePipeline, store: SnapshotStore, mock_ws: MagicMock
) -> None:
    assert await pipeline.rebroadcast() == 0
    mock_ws.publish.assert_not_awaited()

    text = store.write({"competition": "Serie B"})
    await pipeline.rebroadcast()
    mock_ws.publish.assert_awaited_once_with(text)


# ── SchedulerService ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_run_once_logs_and_swallows_failures(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    scheduler = SchedulerService(pipeline, settings)
    mock_provider.fetch_all.side_effect = UpstreamUnavailable("/standings", 429, "Too Many Requests")

    assert await scheduler.run_once(PipelineTrigger.SCHEDULED) is False
    assert "429" in (scheduler.last_error or "")

    mock_provider.fetch_all.side_effect = None
    assert await scheduler.run_once(PipelineTrigger.SCHEDULED) is True
    assert scheduler.last_error is None
    assert scheduler.last_success_at is not None


@pytest.mark.asyncio
async def test_trigger_now_reports_failure_to_caller(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    scheduler = SchedulerService(pipeline, settings)
    mock_provider.fetch_all.side_effect = UpstreamUnavailable("/fixtures", 502, "Bad Gateway")

    with pytest.raises(UpstreamUnavailable):
        await scheduler.trigger_now()


@pytest.mark.asyncio
async def test_scheduled_tick_skipped_while_run_in_flight(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    release = asyncio.Event()
    payload = mock_provider.fetch_all.return_value

    async def slow_fetch(*args: Any) -> UpstreamPayload:
        await release.wait()
        return payload

    mock_provider.fetch_all.side_effect = slow_fetch
    scheduler = SchedulerService(pipeline, settings)

    manual = asyncio.create_task(scheduler.trigger_now())
    await asyncio.sleep(0.01)
    assert pipeline.in_flight

    assert await scheduler.run_once(PipelineTrigger.SCHEDULED) is False

    release.set()
    await manual
    assert mock_provider.fetch_all.await_count == 1


@pytest.mark.asyncio
async def test_start_runs_immediately_and_keeps_ticking_after_failure(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    fast = settings.model_copy(update={"update_interval_s": 0.02})
    scheduler = SchedulerService(pipeline, fast)
    mock_provider.fetch_all.side_effect = [
        UpstreamUnavailable("/standings", 500, "Internal Server Error"),
        mock_provider.fetch_all.return_value,
        mock_provider.fetch_all.return_value,
        mock_provider.fetch_all.return_value,
        mock_provider.fetch_all.return_value,
        mock_provider.fetch_all.return_value,
    ]

    scheduler.start()
    try:
        for _ in range(100):
            if mock_provider.fetch_all.await_count >= 3:
                break
            await asyncio.sleep(0.01)
    finally:
        await scheduler.stop()

    assert mock_provider.fetch_all.await_count >= 3
    assert scheduler.last_success_at is not None
    assert not scheduler.running


@pytest.mark.asyncio
async def test_rebroadcast_loop_runs_when_enabled(
    pipeline: UpdatePipeline, settings: Settings, store: SnapshotStore, mock_ws: MagicMock
) -> None:
    store.write({"competition": "Serie B"})
    cfg = settings.model_copy(update={"update_interval_s": 60.0, "rebroadcast_interval_s": 0.02})
    scheduler = SchedulerService(pipeline, cfg)

    scheduler.start()
    try:
        for _ in range(100):
            if mock_ws.publish.await_count >= 3:
                break
            await asyncio.sleep(0.01)
    finally:
        await scheduler.stop()

    # one publish from the startup run, the rest from rebroadcasts
    assert mock_ws.publish.await_count >= 3


@pytest.mark.asyncio
async def test_trigger_now_records_unexpected_errors(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    scheduler = SchedulerService(pipeline, settings)
    mock_provider.fetch_all.side_effect = RuntimeError("decoder exploded")

    with pytest.raises(RuntimeError):
        await scheduler.trigger_now()

    assert scheduler.last_error == "decoder exploded"


@pytest.mark.asyncio
async def test_ticks_do_not_drift_by_run_duration(
    pipeline: UpdatePipeline, settings: Settings, mock_provider: MagicMock
) -> None:
    loop = asyncio.get_running_loop()
    starts: list[float] = []
    payload = mock_provider.fetch_all.return_value

    async def slow_fetch(*args: Any) -> UpstreamPayload:
        starts.append(loop.time())
        await asyncio.sleep(0.15)
        return payload

    mock_provider.fetch_all.side_effect = slow_fetch
    scheduler = SchedulerService(pipeline, settings.model_copy(update={"update_interval_s": 0.2}))

    scheduler.start()
    try:
        for _ in range(200):
            if len(starts) >= 2:
                break
            await asyncio.sleep(0.01)
    finally:
        await scheduler.stop()

    # start-to-start is the interval, not interval + run time (0.35)
    assert 0.15 <= starts[1] - starts[0] < 0.3
