"""Exception hierarchy for livematrix."""
from __future__ import annotations


class LiveMatrixError(Exception):
    """Base exception for all livematrix errors."""


class SettingsError(LiveMatrixError):
    """Device settings file missing, unreadable or malformed."""


class FetchError(LiveMatrixError):
    """A fetch cycle for one data source failed.

    Every subclass is handled the same way by the engine: the failure is
    logged, the source's last good snapshot stays readable and the refresh
    policy's error backoff decides when to try again.
    """


class TransportError(FetchError):
    """Host unreachable, connection reset or request timed out."""


class FetchTimeout(TransportError):
    """A worker did not report back within its flight timeout."""


class StatusError(FetchError):
    """Server answered with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class ParseError(FetchError):
    """Body was not JSON, or a required field was missing or malformed."""


class ConfigurationError(FetchError):
    """The source cannot be fetched with the current device settings."""
