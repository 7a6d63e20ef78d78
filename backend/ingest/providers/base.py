"""
Abstract base class for upstream sports data providers.
Defines the contract every provider connector must implement.
"""
from __future__ import annotations

import abc
import asyncio
import time
from typing import Any

from shared.utils.http_client import UpstreamHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class UpstreamPayload:
    """Raw standings and fixtures documents from one fetch."""

    def __init__(self, standings: Any, fixtures: Any, latency_ms: float = 0.0) -> None:
        self.standings = standings
        self.fixtures = fixtures
        self.latency_ms = latency_ms


class BaseProvider(abc.ABC):
    """
    Abstract base class for sports data providers.

    Subclasses implement the two per-resource fetches; the base class runs
    them concurrently and owns the HTTP client lifecycle.
    """

    def __init__(self, name: str, http_client: UpstreamHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> str:
        return self._name

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    async def fetch_all(self, league_id: str, season: str) -> UpstreamPayload:
        """
        Fetch standings and fixtures concurrently.

        Either failure fails the whole fetch; no partial payload is returned.

        Raises:
            UpstreamUnavailable: If either request fails.
        """
        self._check_ready()
        start = time.perf_counter()
        standings, fixtures = await asyncio.gather(
            self._fetch_standings(league_id, season),
            self._fetch_fixtures(league_id, season),
        )
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "upstream_fetch_complete",
            provider=self._name,
            league_id=league_id,
            season=season,
            latency_ms=round(latency_ms, 2),
        )
        return UpstreamPayload(standings=standings, fixtures=fixtures, latency_ms=latency_ms)

    def _check_ready(self) -> None:
        """Raise ConfigurationError when required credentials are missing."""

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    async def _fetch_standings(self, league_id: str, season: str) -> Any:
        """Provider-specific standings fetch."""
        ...

    @abc.abstractmethod
    async def _fetch_fixtures(self, league_id: str, season: str) -> Any:
        """Provider-specific fixtures fetch."""
        ...
