from __future__ import annotations


class StravaStatsError(Exception):
    """Base class for all tracker errors."""


class AcquisitionError(StravaStatsError):
    """A snapshot could not be fetched (timeout, navigation failure, bad status)."""

    def __init__(self, message: str, address: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.address = address
        self.status_code = status_code


class InvalidMetricError(StravaStatsError, ValueError):
    """A raw distance or duration string is not in a recognised format."""


class PersistenceWriteError(StravaStatsError):
    """The state file could not be written. Fatal for the run."""


class ConfigError(StravaStatsError):
    """Configuration file or override values are invalid."""
