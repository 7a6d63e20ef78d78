"""
Central configuration for the LeagueFeed service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the relay service."""

    model_config = SettingsConfigDict(
        env_prefix="LF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: list[str] = ["*"]

    # ── Upstream ─────────────────────────────────────────────
    upstream_base_url: str = "https://v3.football.api-sports.io"
    upstream_api_key: str = ""
    upstream_auth_header: str = Field(
        default="x-apisports-key",
        description="Header carrying the API key (x-rapidapi-key when going through RapidAPI).",
    )
    upstream_rapidapi_host: str = ""
    upstream_timeout_s: float = 15.0

    # ── League ───────────────────────────────────────────────
    league_id: str = "72"
    season: str = "2025"
    competition_label: str = "Serie B"
    default_round: int | str = 1

    # ── Scheduler ────────────────────────────────────────────
    update_interval_s: float = Field(default=600.0, gt=0)
    rebroadcast_interval_s: float = Field(
        default=0.0,
        ge=0,
        description="Re-push the stored snapshot to every subscriber on this period; 0 disables.",
    )

    # ── Storage ──────────────────────────────────────────────
    snapshot_path: Path = Path("data/snapshot.json")

    # ── Admin ────────────────────────────────────────────────
    admin_secret: str = ""

    # ── WebSocket ────────────────────────────────────────────
    ws_send_timeout_s: float = 5.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @model_validator(mode="after")
    def use_plain_env_fallbacks(self) -> "Settings":
        """Pick up API_FOOTBALL_KEY / ADMIN_SECRET when the LF_ variants are unset."""
        if not self.upstream_api_key:
            self.upstream_api_key = os.environ.get("API_FOOTBALL_KEY", "")
        if not self.admin_secret:
            self.admin_secret = os.environ.get("ADMIN_SECRET", "")
        return self

    @property
    def upstream_headers(self) -> dict[str, str]:
        """Auth headers in the form the upstream provider mandates."""
        headers: dict[str, str] = {}
        if self.upstream_api_key:
            headers[self.upstream_auth_header] = self.upstream_api_key
        if self.upstream_rapidapi_host:
            headers["x-rapidapi-host"] = self.upstream_rapidapi_host
        return headers


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
