"""Domain Events related to API calls and rate limiting.

Examples include events for when calls are deferred, backed off, time out,
fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Specific API Events ---

@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when an API call waits for its rate limit to clear."""
    endpoint: str
    bucket: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call is about to be sent."""
    endpoint: str
    bucket: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an API call returns a decodable payload."""
    endpoint: str
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an API call fails (no retry follows)."""
    endpoint: str
    error_type: str
    error_message: str
    status: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RateLimitBackoffApplied(DomainEvent):
    """Event triggered when a too-many-requests answer doubles a bucket's backoff."""
    endpoint: str
    bucket: str
    backoff_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestTimedOut(DomainEvent):
    """Event triggered when the write timeout fires before the real completion."""
    endpoint: str
    timeout_seconds: float
    timestamp: float = field(default_factory=time.time)
