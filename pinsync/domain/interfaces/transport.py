"""Interface for sending calls to the bookmarking API.

Defines the contract for issuing one request either synchronously (blocking
the caller) or asynchronously (awaited on the event loop), and the response
shape the resilience layer inspects.
"""

import abc
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pinsync.domain.models.common import Endpoint

TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class TransportResponse:
    """Raw outcome of one API call."""
    status: int
    body: str

    @property
    def is_rate_limited(self) -> bool:
        return self.status == TOO_MANY_REQUESTS

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(abc.ABC):
    """Abstract Base Class for API transports."""

    @abc.abstractmethod
    def issue(
        self,
        endpoint: Endpoint,
        params: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """Sends a request and blocks until the response arrives.

        Args:
            endpoint: API method path (e.g. 'posts/all').
            params: Query parameters for the call.
            timeout: Seconds before giving up (transport default if None).

        Returns:
            The response status and body.

        Raises:
            RequestTimeout: If no response arrived within the timeout.
            NetworkError: For connection or protocol failures.
        """
        pass

    @abc.abstractmethod
    async def issue_async(
        self,
        endpoint: Endpoint,
        params: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """Sends a request without blocking the event loop.

        Same contract as `issue`.
        """
        pass

    def close(self) -> None:
        """Releases pooled blocking connections. Optional for implementations."""
        pass

    async def aclose(self) -> None:
        """Releases pooled async connections. Optional for implementations."""
        pass
