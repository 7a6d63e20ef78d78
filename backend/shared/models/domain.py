"""
Pydantic v2 domain models for the normalized snapshot.
Attributes are snake_case; the wire/disk form uses the camelCase aliases.
"""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import MatchStatus

RoundKey = Union[int, str]


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict keyed by the public (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


# ── Standings ───────────────────────────────────────────────────────────
class TeamStanding(DomainModel):
    """One league table row. won + draw + lost == played is not enforced."""
    position: int
    team: str
    points: int = 0
    played: int = 0
    won: int = 0
    draw: int = 0
    lost: int = 0
    goals_for: int = Field(default=0, alias="goalsFor")
    goals_against: int = Field(default=0, alias="goalsAgainst")


# ── Fixtures ────────────────────────────────────────────────────────────
class Match(DomainModel):
    home: str
    away: str
    home_score: Optional[int] = Field(default=None, alias="homeScore")
    away_score: Optional[int] = Field(default=None, alias="awayScore")
    status: MatchStatus = MatchStatus.SCHEDULED
    date: Optional[str] = None


class Round(DomainModel):
    round: RoundKey
    matches: list[Match] = Field(default_factory=list)

    @property
    def has_live_match(self) -> bool:
        return any(m.status.is_live for m in self.matches)


# ── Snapshot ────────────────────────────────────────────────────────────
class Snapshot(DomainModel):
    """The single persisted and broadcast unit."""
    competition: str
    current_round: RoundKey = Field(alias="currentRound")
    standings: list[TeamStanding] = Field(default_factory=list)
    rounds: list[Round] = Field(default_factory=list)

    @property
    def match_count(self) -> int:
        return sum(len(r.matches) for r in self.rounds)
