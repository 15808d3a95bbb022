from __future__ import annotations


class SourceError(Exception):
    """Failure of a single source fetch. Always recovered per unit."""

    kind = "network"

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class NetworkError(SourceError):
    kind = "network"


class ParseError(SourceError):
    kind = "parse"


class RateLimitedError(SourceError):
    kind = "rate-limited"


class ConfigError(ValueError):
    """Malformed settings or source table."""


class RefreshBusyError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("REFRESH_ALREADY_RUNNING")


class AggregationError(RuntimeError):
    """A cycle could not enumerate any unit of work."""
