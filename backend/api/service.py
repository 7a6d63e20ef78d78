"""
LeagueFeed entrypoint: serves api.app:app with uvicorn.

One process holds the subscriber registry and the scheduler, so a single
worker is always used.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import Settings, get_settings


def resolve_port(settings: Settings) -> int:
    """PORT (set by hosting platforms) wins over LF_API_PORT."""
    raw = os.environ.get("PORT", "").strip()
    return int(raw) if raw.isdigit() else settings.api_port


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=resolve_port(settings),
        workers=1,
        log_level=settings.log_level.lower(),
        access_log=False,  # RequestLoggingMiddleware writes the access log
    )


if __name__ == "__main__":
    main()
