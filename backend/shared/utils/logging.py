"""
Structured logging for the LeagueFeed service.

structlog renders every entry; stdlib logging (uvicorn, httpx) is routed
through the same formatter. Each entry carries the service name and the
league/season being relayed.
"""
from __future__ import annotations

import logging
import sys

import structlog
from shared.config import Environment, Settings, get_settings

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio", "websockets")

_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.environment == Environment.DEV:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def _level(settings: Settings) -> int:
    if settings.debug:
        return logging.DEBUG
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def setup_logging(service_name: str, settings: Settings | None = None) -> None:
    """
    Configure structlog and the root stdlib logger for the process.

    Binds `service`, `league_id` and `season` so every line, including
    those logged from background pipeline runs, says what it relays.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings),
            ],
            foreign_pre_chain=_PRE_CHAIN,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(settings))

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        league_id=settings.league_id,
        season=settings.season,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
