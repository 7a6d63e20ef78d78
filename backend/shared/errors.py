"""Error kinds raised across the update pipeline and the HTTP front."""
from __future__ import annotations


class LeagueFeedError(Exception):
    """Base class for all service errors."""


class ConfigurationError(LeagueFeedError):
    """A required setting (API key, league, season) is missing."""


class UpstreamUnavailable(LeagueFeedError):
    """Non-success status, network failure or undecodable body from the upstream API."""

    def __init__(self, path: str, status_code: int | None = None, reason: str = "") -> None:
        self.path = path
        self.status_code = status_code
        self.reason = reason
        if status_code is None:
            message = f"Upstream request to {path} failed: {reason}"
        else:
            message = f"Upstream request to {path} failed with {status_code} {reason}".rstrip()
        super().__init__(message)


class MalformedUpstreamData(LeagueFeedError):
    """Upstream payload matched none of the known shapes."""


class PersistenceFailure(LeagueFeedError):
    """The snapshot file could not be written."""


class AdminUnauthorized(LeagueFeedError):
    """Missing, wrong or unconfigured admin secret."""
