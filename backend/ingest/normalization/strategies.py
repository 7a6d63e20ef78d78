"""
Named extraction strategies for upstream standings and fixtures payloads.

Providers disagree on nesting and field names across API versions. Each
strategy recognizes one shape and raises MalformedUpstreamData when the
payload is not that shape, so the chain can move on to the next one.
Individual rows are read leniently: alternate key names are tried in order
and missing values fall back to 0 (aggregates) or None (scores).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar

from shared.errors import MalformedUpstreamData
from shared.models.domain import Match, RoundKey, TeamStanding
from shared.models.enums import MatchStatus
from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Upstream short codes (API-Football, football-data.org) → MatchStatus.
# Anything not listed maps to SCHEDULED.
STATUS_MAP: dict[str, MatchStatus] = {
    # not started
    "TBD": MatchStatus.SCHEDULED,
    "NS": MatchStatus.SCHEDULED,
    "SCHEDULED": MatchStatus.SCHEDULED,
    "TIMED": MatchStatus.SCHEDULED,
    # in progress
    "1H": MatchStatus.LIVE,
    "HT": MatchStatus.LIVE,
    "2H": MatchStatus.LIVE,
    "ET": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "P": MatchStatus.LIVE,
    "INT": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "IN_PLAY": MatchStatus.LIVE,
    "PAUSED": MatchStatus.LIVE,
    # finished
    "FT": MatchStatus.FINISHED,
    "AET": MatchStatus.FINISHED,
    "PEN": MatchStatus.FINISHED,
    "FINISHED": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "WO": MatchStatus.FINISHED,
}


def map_status(code: Any) -> MatchStatus:
    """Map an upstream status code to MatchStatus; unknown codes are SCHEDULED."""
    if not isinstance(code, str):
        return MatchStatus.SCHEDULED
    return STATUS_MAP.get(code.strip().upper(), MatchStatus.SCHEDULED)


# ── Field helpers ───────────────────────────────────────────────────────

def dig(obj: Any, path: str) -> Any:
    """Walk a dotted path through dicts (keys) and lists (integer indices)."""
    for part in path.split("."):
        if isinstance(obj, dict):
            obj = obj.get(part)
        elif isinstance(obj, list) and part.isdigit():
            idx = int(part)
            obj = obj[idx] if idx < len(obj) else None
        else:
            return None
        if obj is None:
            return None
    return obj


def first_of(obj: Any, *paths: str) -> Any:
    """Value at the first path that resolves to something other than None."""
    for path in paths:
        value = dig(obj, path)
        if value is not None:
            return value
    return None


def as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, float):
        # NaN and infinities (1e999 parses as inf) have no integer value
        return int(value) if math.isfinite(value) else default
    return default


def as_name(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("name") or value.get("shortName") or value.get("short_name")
    if value is None:
        return ""
    return str(value)


def as_round_key(value: Any) -> Optional[RoundKey]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)
    text = str(value).strip()
    return text or None


def _require_list(value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedUpstreamData(f"{what} is not a list")
    return value


# ── Strategy plumbing ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ExtractionStrategy:
    """A named extractor for one upstream shape."""

    name: str
    extract: Callable[[Any], list[Any]]


def run_chain(
    strategies: Sequence[ExtractionStrategy], raw: Any, kind: str
) -> tuple[Optional[str], list[Any]]:
    """
    Try each strategy in order and return (strategy_name, rows) for the first match.

    Returns (None, []) when no strategy recognizes the payload.
    """
    for strategy in strategies:
        try:
            rows = strategy.extract(raw)
        except MalformedUpstreamData:
            continue
        logger.debug("normalizer_strategy_matched", kind=kind, strategy=strategy.name, rows=len(rows))
        return strategy.name, rows
    logger.warning("normalizer_no_strategy_matched", kind=kind, payload_type=type(raw).__name__)
    return None, []


# ── Standings ───────────────────────────────────────────────────────────

def standing_from_row(row: dict[str, Any], index: int) -> TeamStanding:
    """Build a TeamStanding; position is the upstream rank, else the 1-based index."""
    return TeamStanding(
        position=as_int(first_of(row, "rank", "position", "pos"), None) or index,
        team=as_name(first_of(row, "team.name", "team", "teamName", "name")),
        points=as_int(first_of(row, "points", "pts"), 0),
        played=as_int(first_of(row, "all.played", "playedGames", "played", "games", "matches"), 0),
        won=as_int(first_of(row, "all.win", "won", "wins", "win"), 0),
        draw=as_int(first_of(row, "all.draw", "draw", "draws", "drawn"), 0),
        lost=as_int(first_of(row, "all.lose", "lost", "losses", "lose"), 0),
        goals_for=as_int(first_of(row, "all.goals.for", "goalsFor", "goals_for", "gf"), 0),
        goals_against=as_int(
            first_of(row, "all.goals.against", "goalsAgainst", "goals_against", "ga"), 0
        ),
    )


def _standings(rows: list[Any]) -> list[TeamStanding]:
    dict_rows = [r for r in rows if isinstance(r, dict)]
    return [standing_from_row(row, i) for i, row in enumerate(dict_rows, start=1)]


def _nested_league_table(raw: Any) -> list[TeamStanding]:
    """API-Football v3: response[0].league.standings[0]."""
    return _standings(_require_list(dig(raw, "response.0.league.standings.0"), "league.standings[0]"))


def _grouped_table(raw: Any) -> list[TeamStanding]:
    """football-data.org style: standings[0].table."""
    return _standings(_require_list(dig(raw, "standings.0.table"), "standings[0].table"))


def _flat_rows(raw: Any) -> list[TeamStanding]:
    """A bare list of rows, or one under standings/response/table."""
    rows = raw if isinstance(raw, list) else first_of(raw, "standings", "table", "response")
    rows = _require_list(rows, "standings rows")
    if any(isinstance(r, dict) and ("league" in r or "table" in r) for r in rows):
        raise MalformedUpstreamData("rows are nested containers, not table rows")
    return _standings(rows)


STANDINGS_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("nested_league_table", _nested_league_table),
    ExtractionStrategy("grouped_table", _grouped_table),
    ExtractionStrategy("flat_rows", _flat_rows),
)


def extract_competition(raw: Any) -> Optional[str]:
    """'<league name> <season>' from a standings payload, if it carries one."""
    name = first_of(raw, "response.0.league.name", "competition.name", "league.name")
    if not name:
        return None
    season = first_of(raw, "response.0.league.season", "season.startDate", "league.season")
    if isinstance(season, str) and len(season) >= 4 and season[:4].isdigit():
        season = season[:4]
    return f"{name} {season}" if season is not None else str(name)


# ── Fixtures ────────────────────────────────────────────────────────────

FixtureRow = tuple[Optional[RoundKey], Match]


def _api_football_fixture(item: dict[str, Any]) -> FixtureRow:
    match = Match(
        home=as_name(dig(item, "teams.home")),
        away=as_name(dig(item, "teams.away")),
        home_score=as_int(dig(item, "goals.home"), None),
        away_score=as_int(dig(item, "goals.away"), None),
        status=map_status(dig(item, "fixture.status.short")),
        date=_as_date(dig(item, "fixture.date")),
    )
    return as_round_key(dig(item, "league.round")), match


def _flat_fixture(item: dict[str, Any]) -> FixtureRow:
    match = Match(
        home=as_name(first_of(item, "homeTeam", "home", "home_team", "teams.home")),
        away=as_name(first_of(item, "awayTeam", "away", "away_team", "teams.away")),
        home_score=as_int(
            first_of(item, "score.fullTime.home", "homeScore", "home_score", "goals.home", "score.home"),
            None,
        ),
        away_score=as_int(
            first_of(item, "score.fullTime.away", "awayScore", "away_score", "goals.away", "score.away"),
            None,
        ),
        status=map_status(first_of(item, "status.short", "status")),
        date=_as_date(first_of(item, "utcDate", "date", "kickoff")),
    )
    return as_round_key(first_of(item, "matchday", "round", "league.round", "stage")), match


def _as_date(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _api_football_fixtures(raw: Any) -> list[FixtureRow]:
    """API-Football v3: response[*] with fixture/teams/goals/league blocks."""
    items = _require_list(dig(raw, "response"), "response")
    if any(isinstance(i, dict) and "fixture" not in i for i in items):
        raise MalformedUpstreamData("response items are not fixtures")
    return [_api_football_fixture(i) for i in items if isinstance(i, dict)]


def _flat_matches(raw: Any) -> list[FixtureRow]:
    """A bare list of matches, or one under matches/fixtures/response."""
    items = raw if isinstance(raw, list) else first_of(raw, "matches", "fixtures", "response")
    items = _require_list(items, "fixtures")
    return [_flat_fixture(i) for i in items if isinstance(i, dict)]


FIXTURE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("api_football_fixtures", _api_football_fixtures),
    ExtractionStrategy("flat_matches", _flat_matches),
)
