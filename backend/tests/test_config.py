"""Settings: LF_ env vars, plain env fallbacks and upstream auth headers."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from shared.config import Settings


def test_defaults() -> None:
    s = Settings(_env_file=None)
    assert s.api_port == 3001
    assert s.update_interval_s == 600.0
    assert s.rebroadcast_interval_s == 0.0
    assert s.default_round == 1
    assert s.snapshot_path == Path("data/snapshot.json")


def test_prefixed_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LF_LEAGUE_ID", "71")
    monkeypatch.setenv("LF_SEASON", "2024")
    monkeypatch.setenv("LF_UPDATE_INTERVAL_S", "30")
    s = Settings(_env_file=None)
    assert (s.league_id, s.season, s.update_interval_s) == ("71", "2024", 30.0)


def test_plain_env_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LF_UPSTREAM_API_KEY", raising=False)
    monkeypatch.delenv("LF_ADMIN_SECRET", raising=False)
    monkeypatch.setenv("API_FOOTBALL_KEY", "from-plain-env")
    monkeypatch.setenv("ADMIN_SECRET", "plain-secret")
    s = Settings(_env_file=None)
    assert s.upstream_api_key == "from-plain-env"
    assert s.admin_secret == "plain-secret"


def test_prefixed_value_wins_over_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_FOOTBALL_KEY", "plain")
    monkeypatch.setenv("LF_UPSTREAM_API_KEY", "prefixed")
    assert Settings(_env_file=None).upstream_api_key == "prefixed"


def test_non_positive_interval_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, update_interval_s=0)


def test_upstream_headers_direct_and_rapidapi() -> None:
    direct = Settings(_env_file=None, upstream_api_key="k")
    assert direct.upstream_headers == {"x-apisports-key": "k"}

    rapid = Settings(
        _env_file=None,
        upstream_api_key="k",
        upstream_auth_header="x-rapidapi-key",
        upstream_rapidapi_host="api-football-v1.p.rapidapi.com",
    )
    assert rapid.upstream_headers == {
        "x-rapidapi-key": "k",
        "x-rapidapi-host": "api-football-v1.p.rapidapi.com",
    }


def test_no_key_means_no_auth_header(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("API_FOOTBALL_KEY", raising=False)
    monkeypatch.delenv("LF_UPSTREAM_API_KEY", raising=False)
    assert Settings(_env_file=None).upstream_headers == {}


def test_port_env_overrides_configured_port(monkeypatch: pytest.MonkeyPatch) -> None:
    from api.service import resolve_port

    s = Settings(_env_file=None, api_port=3001)
    monkeypatch.delenv("PORT", raising=False)
    assert resolve_port(s) == 3001
    monkeypatch.setenv("PORT", "8080")
    assert resolve_port(s) == 8080
    monkeypatch.setenv("PORT", "not-a-port")
    assert resolve_port(s) == 3001
