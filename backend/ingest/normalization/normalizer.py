"""
Normalization layer for the update pipeline.

Turns raw upstream standings and fixtures into one Snapshot:
- standings rows mapped to TeamStanding, in upstream order
- fixtures grouped by round label, encounter order preserved inside a round
- rounds sorted numerically when every key is numeric, else by string
- currentRound is the first round with a LIVE match, else the first round

This module is pure: no I/O, no clock, same input gives the same Snapshot.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from shared.models.domain import Match, Round, RoundKey, Snapshot
from shared.utils.logging import get_logger

from ingest.normalization.strategies import (
    FIXTURE_STRATEGIES,
    STANDINGS_STRATEGIES,
    extract_competition,
    run_chain,
)

logger = get_logger(__name__)


def _numeric_value(key: RoundKey) -> Optional[float]:
    try:
        value = float(key)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def sort_round_keys(keys: list[RoundKey]) -> list[RoundKey]:
    """
    Numeric ascending when every key is numeric; otherwise string comparison.

    Mixed numeric and non-numeric keys fall back to string comparison.
    """
    numeric = [(_numeric_value(k), k) for k in keys]
    if all(value is not None for value, _ in numeric):
        return [k for _, k in sorted(numeric, key=lambda pair: pair[0])]
    return sorted(keys, key=str)


def group_rounds(rows: list[tuple[Optional[RoundKey], Match]], default_round: RoundKey) -> list[Round]:
    """Group fixtures by round key and return the rounds in sorted order."""
    grouped: dict[RoundKey, list[Match]] = {}
    for key, match in rows:
        grouped.setdefault(default_round if key is None else key, []).append(match)
    return [Round(round=key, matches=grouped[key]) for key in sort_round_keys(list(grouped))]


def select_current_round(rounds: list[Round], default_round: RoundKey) -> RoundKey:
    """First round holding a LIVE match, else the first round, else default_round."""
    for rnd in rounds:
        if rnd.has_live_match:
            return rnd.round
    if rounds:
        return rounds[0].round
    return default_round


def normalize(
    standings_raw: Any,
    fixtures_raw: Any,
    *,
    competition: str = "",
    default_round: RoundKey = 1,
) -> Snapshot:
    """
    Build a Snapshot from raw upstream standings and fixtures documents.

    Args:
        standings_raw: Decoded standings response.
        fixtures_raw: Decoded fixtures response.
        competition: Label used when the standings payload carries none.
        default_round: Round key for fixtures without a label, and currentRound when there are no rounds.

    Returns:
        A complete Snapshot. Unrecognized shapes produce empty sections, never errors.
    """
    standings_strategy, standings = run_chain(STANDINGS_STRATEGIES, standings_raw, "standings")
    fixtures_strategy, fixture_rows = run_chain(FIXTURE_STRATEGIES, fixtures_raw, "fixtures")

    rounds = group_rounds(fixture_rows, default_round)
    snapshot = Snapshot(
        competition=extract_competition(standings_raw) or competition,
        current_round=select_current_round(rounds, default_round),
        standings=standings,
        rounds=rounds,
    )

    logger.debug(
        "snapshot_normalized",
        standings_strategy=standings_strategy,
        fixtures_strategy=fixtures_strategy,
        teams=len(snapshot.standings),
        rounds=len(snapshot.rounds),
        matches=snapshot.match_count,
        current_round=snapshot.current_round,
    )
    return snapshot
