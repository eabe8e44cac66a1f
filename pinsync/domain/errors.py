"""Error taxonomy for the sync engine.

The resilience layer absorbs most of these into a boolean success flag;
they surface as exceptions only at the edges (transport, snapshot store,
configuration) and for caller mistakes (LogicError).
"""

from typing import Optional


class PinsyncError(Exception):
    """Base class for all pinsync errors."""


class RateLimited(PinsyncError):
    """The server answered with a too-many-requests signal."""

    def __init__(self, endpoint: str, backoff_seconds: Optional[float] = None):
        self.endpoint = endpoint
        self.backoff_seconds = backoff_seconds
        message = f"Rate limited on {endpoint}"
        if backoff_seconds is not None:
            message += f"; backing off {backoff_seconds:.0f}s"
        super().__init__(message)


class DecodeError(PinsyncError):
    """A response body or record could not be decoded."""


class RequestTimeout(PinsyncError):
    """A request did not complete before its deadline."""


class NetworkError(PinsyncError):
    """The transport failed to deliver a request or got an error status."""


class LogicError(PinsyncError):
    """An operation makes no sense for the given selection (e.g. no tags to remove)."""


class SnapshotError(PinsyncError):
    """The on-disk snapshot is missing, unreadable or corrupt."""


class ConfigurationError(PinsyncError):
    """A required configuration value is missing or invalid."""
