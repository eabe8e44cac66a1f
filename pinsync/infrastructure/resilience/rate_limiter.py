"""Implementation of a per-endpoint rate limiter.

Controls the frequency of outgoing requests to respect the API's documented
per-endpoint limits. Endpoints are grouped into buckets that share one timer;
a too-many-requests answer imposes an explicit backoff that doubles on each
repeat and is cleared by the next normal response.
"""

import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from pinsync.domain.models.common import (
    BucketName,
    FULL_LISTING_ENDPOINT,
    RECENT_LISTING_ENDPOINT,
)

logger = logging.getLogger(__name__)

ALL_BUCKET = BucketName("all")
RECENT_BUCKET = BucketName("recent")
DEFAULT_BUCKET = BucketName("default")

# Baseline seconds between calls per bucket
DEFAULT_INTERVALS: Dict[BucketName, float] = {
    ALL_BUCKET: 300.0,
    RECENT_BUCKET: 60.0,
    DEFAULT_BUCKET: 3.0,
}

_ENDPOINT_BUCKETS: Dict[str, BucketName] = {
    FULL_LISTING_ENDPOINT: ALL_BUCKET,
    RECENT_LISTING_ENDPOINT: RECENT_BUCKET,
}


@dataclass
class EndpointRateState:
    """Rate bookkeeping for one bucket."""
    last_request_time: Optional[float] = None  # monotonic seconds, only advances
    explicit_backoff: Optional[float] = None   # seconds; only doubles or clears


class RateLimiter:
    """Per-bucket minimum-interval limiter with explicit server backoff."""

    def __init__(
        self,
        intervals: Optional[Mapping[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the rate limiter.

        Args:
            intervals: Baseline seconds per bucket; missing buckets use the
                defaults (all=300, recent=60, default=3).
            clock: Monotonic time source.
        """
        self.intervals: Dict[BucketName, float] = dict(DEFAULT_INTERVALS)
        if intervals:
            self.intervals.update({BucketName(k): float(v) for k, v in intervals.items()})
        self._clock = clock
        self._states: Dict[BucketName, EndpointRateState] = {}
        logger.info(
            "RateLimiter initialized: "
            + ", ".join(f"{name}={seconds:g}s" for name, seconds in self.intervals.items())
        )

    @staticmethod
    def classify(endpoint: str) -> BucketName:
        """Maps an endpoint (or an already classified bucket name) to its bucket."""
        if endpoint in DEFAULT_INTERVALS:
            return BucketName(endpoint)
        return _ENDPOINT_BUCKETS.get(endpoint.strip("/"), DEFAULT_BUCKET)

    def state(self, endpoint: str) -> EndpointRateState:
        bucket = self.classify(endpoint)
        if bucket not in self._states:
            self._states[bucket] = EndpointRateState()
        return self._states[bucket]

    def baseline_interval(self, endpoint: str) -> float:
        return self.intervals[self.classify(endpoint)]

    def record_request(self, endpoint: str) -> None:
        """Stamps the current time as the bucket's last request."""
        state = self.state(endpoint)
        now = self._clock()
        if state.last_request_time is None or now > state.last_request_time:
            state.last_request_time = now

    def note_rate_limited(self, endpoint: str) -> float:
        """Doubles the bucket's backoff (starting from its baseline) and returns it."""
        bucket = self.classify(endpoint)
        state = self.state(bucket)
        state.explicit_backoff = 2 * (state.explicit_backoff or self.intervals[bucket])
        logger.warning(
            f"Rate limited on '{bucket}' requests; waiting {state.explicit_backoff:.0f}s "
            f"before the next one."
        )
        return state.explicit_backoff

    def clear_backoff(self, endpoint: str) -> None:
        state = self.state(endpoint)
        if state.explicit_backoff is not None:
            logger.debug(f"Clearing backoff for '{self.classify(endpoint)}' bucket.")
        state.explicit_backoff = None

    def wait_time(self, endpoint: str) -> float:
        """Seconds to wait before the bucket may be called again.

        An explicit backoff is returned as-is; elapsed time does not reduce it.
        """
        bucket = self.classify(endpoint)
        state = self.state(bucket)
        if state.explicit_backoff is not None:
            return state.explicit_backoff
        if state.last_request_time is None:
            return 0.0
        elapsed = self._clock() - state.last_request_time
        return max(0.0, self.intervals[bucket] - elapsed)

    def reset(self) -> None:
        """Forgets all request times and backoffs."""
        self._states.clear()
