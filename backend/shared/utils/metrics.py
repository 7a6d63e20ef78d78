"""
Metrics collection for LeagueFeed.
Wraps prometheus_client counters, histograms and gauges.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PIPELINE_RUNS = Counter(
    "lf_pipeline_runs_total",
    "Update pipeline runs",
    ["trigger", "outcome"],
)
UPSTREAM_REQUESTS = Counter(
    "lf_upstream_requests_total",
    "Total upstream HTTP requests",
    ["endpoint", "status"],
)
SNAPSHOT_WRITES = Counter(
    "lf_snapshot_writes_total",
    "Snapshot file writes",
    ["outcome"],
)
WS_MESSAGES_SENT = Counter(
    "lf_ws_messages_sent_total",
    "Snapshot messages delivered to WebSocket subscribers",
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "lf_upstream_latency_seconds",
    "Upstream request latency in seconds",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
)
PIPELINE_DURATION = Histogram(
    "lf_pipeline_duration_seconds",
    "Time to run one fetch-normalize-persist-publish cycle",
    ["trigger"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
WS_CONNECTIONS = Gauge(
    "lf_ws_connections_active",
    "Currently active WebSocket subscribers",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None, settings: Settings | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = settings or get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
