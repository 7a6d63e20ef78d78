"""
Async HTTP client wrapper for upstream provider requests.
Handles timeouts, error typing and metrics collection. Performs no retries:
the scheduler simply tries again on its next tick.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import UpstreamUnavailable
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)


class UpstreamHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.
    Every failure surfaces as UpstreamUnavailable.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.upstream_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Perform a GET request and decode the JSON body.

        Args:
            path: API path relative to base_url.
            params: Query parameters.

        Returns:
            The decoded JSON document.

        Raises:
            UpstreamUnavailable: On non-2xx status, network failure or invalid JSON.
        """
        if not self._client:
            raise RuntimeError("UpstreamHTTPClient not started. Call start() first.")

        endpoint = path.strip("/") or "root"
        start_time = time.perf_counter()
        status = "error"

        try:
            resp = await self._client.get(path, params=params)
            status = str(resp.status_code)

            if not resp.is_success:
                logger.error(
                    "upstream_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    reason=resp.reason_phrase,
                )
                raise UpstreamUnavailable(path, resp.status_code, resp.reason_phrase)

            try:
                data = resp.json()
            except ValueError as exc:
                status = "invalid_json"
                raise UpstreamUnavailable(path, resp.status_code, f"invalid JSON body: {exc}") from exc

            logger.debug(
                "upstream_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return data

        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("upstream_timeout", provider=self._provider, path=path)
            raise UpstreamUnavailable(path, None, f"timed out after {self._timeout}s") from exc

        except httpx.RequestError as exc:
            status = "network_error"
            logger.error(
                "upstream_request_error",
                provider=self._provider,
                path=path,
                error=str(exc),
            )
            raise UpstreamUnavailable(path, None, str(exc) or exc.__class__.__name__) from exc

        finally:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, status=status).inc()
            UPSTREAM_LATENCY.labels(endpoint=endpoint).observe(time.perf_counter() - start_time)
