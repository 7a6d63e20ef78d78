"""
API-Football (api-sports.io) provider connector.
Standings and fixtures for one league/season via the v3 API, authenticated
with the x-apisports-key header (or x-rapidapi-key through RapidAPI).
"""
from __future__ import annotations

from typing import Any

import httpx

from shared.config import Settings, get_settings
from shared.errors import ConfigurationError
from shared.utils.http_client import UpstreamHTTPClient
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider

logger = get_logger(__name__)


class ApiFootballProvider(BaseProvider):
    """API-Football v3: /standings and /fixtures."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        http_client = UpstreamHTTPClient(
            provider_name="api_football",
            base_url=self._settings.upstream_base_url,
            headers=self._settings.upstream_headers,
            timeout_s=self._settings.upstream_timeout_s,
            transport=transport,
        )
        super().__init__(name="api_football", http_client=http_client)

    def _check_ready(self) -> None:
        if not self._settings.upstream_api_key:
            raise ConfigurationError("Upstream API key is not configured (LF_UPSTREAM_API_KEY)")

    async def _fetch_standings(self, league_id: str, season: str) -> Any:
        data = await self._http.get_json("/standings", params={"league": league_id, "season": season})
        self._warn_on_reported_errors("/standings", data)
        return data

    async def _fetch_fixtures(self, league_id: str, season: str) -> Any:
        data = await self._http.get_json("/fixtures", params={"league": league_id, "season": season})
        self._warn_on_reported_errors("/fixtures", data)
        return data

    def _warn_on_reported_errors(self, path: str, data: Any) -> None:
        """API-Football answers 200 with an `errors` field for quota or key problems."""
        if not isinstance(data, dict):
            return
        errors = data.get("errors")
        if errors:
            logger.warning("upstream_reported_errors", path=path, errors=errors)
