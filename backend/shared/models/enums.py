"""Domain enumerations for LeagueFeed."""
from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"

    @property
    def is_live(self) -> bool:
        return self == MatchStatus.LIVE


class PipelineTrigger(str, Enum):
    """What started a pipeline run; used as a log/metric label."""
    STARTUP = "startup"
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    REPLACE = "replace"
