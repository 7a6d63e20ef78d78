"""
Scheduler service for LeagueFeed.

Drives the update pipeline (fetch → normalize → persist → publish) once at
startup and then on a fixed interval. The same pipeline backs the on-demand
admin trigger. Runs are serialized: a timer tick that finds a run in flight
is skipped, an on-demand run waits for it.
"""
from __future__ import annotations

import asyncio
import contextlib
import math
import time
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.errors import ConfigurationError, LeagueFeedError, PersistenceFailure
from shared.models.domain import Snapshot
from shared.models.enums import PipelineTrigger
from shared.utils.logging import get_logger
from shared.utils.metrics import PIPELINE_DURATION, PIPELINE_RUNS, atrack_latency
from shared.utils.snapshot_store import SnapshotStore

from api.ws.manager import WebSocketManager
from ingest.normalization.normalizer import normalize
from ingest.providers.base import BaseProvider

logger = get_logger(__name__)


class UpdatePipeline:
    """
    One fetch → normalize → persist → publish cycle.

    A failed write aborts the run before publishing, so subscribers never
    see a snapshot that is not on disk.
    """

    def __init__(
        self,
        provider: BaseProvider,
        store: SnapshotStore,
        ws_manager: WebSocketManager,
        settings: Settings | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._ws = ws_manager
        self._settings = settings or get_settings()
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def run(self, trigger: PipelineTrigger = PipelineTrigger.MANUAL) -> Snapshot:
        """
        Run the full pipeline and return the published snapshot.

        Raises:
            ConfigurationError: League or season not configured, or no API key.
            UpstreamUnavailable: Either upstream request failed.
            PersistenceFailure: The snapshot could not be written; nothing is published.
        """
        async with self._lock:
            async with atrack_latency(PIPELINE_DURATION, trigger=trigger.value):
                try:
                    snapshot = await self._run_locked()
                except Exception:
                    PIPELINE_RUNS.labels(trigger=trigger.value, outcome="error").inc()
                    raise
        PIPELINE_RUNS.labels(trigger=trigger.value, outcome="ok").inc()
        return snapshot

    async def _run_locked(self) -> Snapshot:
        settings = self._settings
        if not settings.league_id or not settings.season:
            raise ConfigurationError("League id and season must be configured (LF_LEAGUE_ID, LF_SEASON)")

        payload = await self._provider.fetch_all(settings.league_id, settings.season)
        snapshot = normalize(
            payload.standings,
            payload.fixtures,
            competition=settings.competition_label,
            default_round=settings.default_round,
        )
        text = self._store.write(snapshot.to_payload())
        delivered = await self._ws.publish(text)

        logger.info(
            "pipeline_completed",
            teams=len(snapshot.standings),
            rounds=len(snapshot.rounds),
            matches=snapshot.match_count,
            current_round=snapshot.current_round,
            delivered=delivered,
        )
        return snapshot

    async def replace(self, payload: Any) -> int:
        """
        Persist an arbitrary JSON document verbatim and publish it.

        Bypasses fetch and normalization entirely.

        Returns:
            Number of subscribers the document was delivered to.
        """
        async with self._lock:
            try:
                text = self._store.write(payload)
            except PersistenceFailure:
                PIPELINE_RUNS.labels(trigger=PipelineTrigger.REPLACE.value, outcome="error").inc()
                raise
            delivered = await self._ws.publish(text)
        PIPELINE_RUNS.labels(trigger=PipelineTrigger.REPLACE.value, outcome="ok").inc()
        logger.info("snapshot_replaced", delivered=delivered)
        return delivered

    async def rebroadcast(self) -> int:
        """Re-send the stored snapshot to every subscriber; no-op when nothing is stored."""
        text = self._store.read_text()
        if text is None:
            return 0
        return await self._ws.publish(text)


class SchedulerService:
    """
    Owns the repeating pipeline task (and the optional rebroadcast task).

    start() launches the tasks; stop() cancels them. Errors in a run are
    logged and never stop the timer.
    """

    def __init__(self, pipeline: UpdatePipeline, settings: Settings | None = None) -> None:
        self._pipeline = pipeline
        self._settings = settings or get_settings()
        self._shutdown = asyncio.Event()
        self._update_task: Optional[asyncio.Task[None]] = None
        self._rebroadcast_task: Optional[asyncio.Task[None]] = None
        self.last_success_at: Optional[float] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._update_task is not None and not self._update_task.done()

    def start(self) -> None:
        """Launch the update loop (first run is immediate)."""
        if self.running:
            return
        self._shutdown.clear()
        self._update_task = asyncio.create_task(self._run_update_loop(), name="pipeline-update-loop")
        if self._settings.rebroadcast_interval_s > 0:
            self._rebroadcast_task = asyncio.create_task(
                self._run_rebroadcast_loop(), name="snapshot-rebroadcast-loop"
            )
        logger.info(
            "scheduler_started",
            interval_s=self._settings.update_interval_s,
            rebroadcast_interval_s=self._settings.rebroadcast_interval_s,
        )

    async def stop(self) -> None:
        """Cancel the loops and wait for them to finish."""
        self._shutdown.set()
        for task in (self._update_task, self._rebroadcast_task):
            if task and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._update_task = None
        self._rebroadcast_task = None
        logger.info("scheduler_stopped")

    async def run_once(self, trigger: PipelineTrigger) -> bool:
        """
        Run the pipeline, logging instead of raising.

        Returns:
            True on success, False on failure or when skipped because a run was in flight.
        """
        if self._pipeline.in_flight:
            logger.info("pipeline_skipped_in_flight", trigger=trigger.value)
            return False
        try:
            await self._pipeline.run(trigger)
        except asyncio.CancelledError:
            raise
        except LeagueFeedError as exc:
            self.last_error = str(exc)
            logger.error("pipeline_failed", trigger=trigger.value, error=str(exc), kind=exc.__class__.__name__)
            return False
        except Exception as exc:
            self.last_error = str(exc)
            logger.error("pipeline_unexpected_error", trigger=trigger.value, error=str(exc), exc_info=True)
            return False
        self.last_success_at = time.time()
        self.last_error = None
        return True

    async def trigger_now(self) -> Snapshot:
        """
        Run the pipeline on demand and report the outcome to the caller.

        Raises:
            Exception: Any pipeline failure, re-raised after logging it.
        """
        try:
            snapshot = await self._pipeline.run(PipelineTrigger.MANUAL)
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.error(
                "pipeline_failed",
                trigger=PipelineTrigger.MANUAL.value,
                error=self.last_error,
                kind=exc.__class__.__name__,
            )
            raise
        self.last_success_at = time.time()
        self.last_error = None
        return snapshot

    async def _run_update_loop(self) -> None:
        interval = self._settings.update_interval_s
        trigger = PipelineTrigger.STARTUP
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._shutdown.is_set():
            await self.run_once(trigger)
            trigger = PipelineTrigger.SCHEDULED
            # ticks stay on a fixed grid; a run longer than the interval skips the missed ticks
            next_tick += interval
            now = loop.time()
            if next_tick < now:
                next_tick += interval * math.ceil((now - next_tick) / interval)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._shutdown.wait(), timeout=next_tick - now)

    async def _run_rebroadcast_loop(self) -> None:
        while not self._shutdown.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._settings.rebroadcast_interval_s)
            if self._shutdown.is_set():
                break
            try:
                await self._pipeline.rebroadcast()
            except Exception as exc:
                logger.error("rebroadcast_error", error=str(exc))
