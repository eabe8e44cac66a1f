"""Concrete implementation of the Transport interface using httpx.

Sends GET calls to the bookmarking API, attaching the opaque auth token and
asking for JSON on every call. Uses `httpx.Client` for blocking calls and
`httpx.AsyncClient` for calls awaited on the event loop; both are created on
first use.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from pinsync.domain.errors import NetworkError, RequestTimeout
from pinsync.domain.interfaces.transport import Transport, TransportResponse
from pinsync.domain.models.common import AuthToken, Endpoint

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.pinboard.in/v1/"
DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpxTransport(Transport):
    """Transport for a Pinboard-style API over HTTPS."""

    def __init__(
        self,
        auth_token: AuthToken,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the transport.

        Args:
            auth_token: Credential appended to every call; never interpreted.
            base_url: API root, e.g. 'https://api.pinboard.in/v1/'.
            timeout: Default per-call timeout in seconds.
            transport: Optional httpx transport for the blocking client (tests).
            async_transport: Optional httpx transport for the async client (tests).
        """
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._transport = transport
        self._async_transport = async_transport
        self._client: Optional[httpx.Client] = None
        self._async_client: Optional[httpx.AsyncClient] = None
        logger.info(f"HttpxTransport initialized for {self.base_url}")

    def _url(self, endpoint: Endpoint) -> str:
        return self.base_url + endpoint.strip("/")

    def _params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {**params, "auth_token": self.auth_token, "format": "json"}

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=True)
        return self._client

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._async_client is None or self._async_client.is_closed:
            self._async_client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._async_transport, follow_redirects=True
            )
        return self._async_client

    def issue(
        self,
        endpoint: Endpoint,
        params: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        url = self._url(endpoint)
        logger.debug(f"GET {url} (blocking)")
        try:
            response = self._get_client().get(
                url, params=self._params(params), timeout=timeout if timeout is not None else self.timeout
            )
        except httpx.TimeoutException as e:
            raise RequestTimeout(f"Timed out calling {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach {endpoint}: {e}") from e
        return TransportResponse(status=response.status_code, body=response.text)

    async def issue_async(
        self,
        endpoint: Endpoint,
        params: Dict[str, Any],
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        url = self._url(endpoint)
        logger.debug(f"GET {url}")
        try:
            response = await self._get_async_client().get(
                url, params=self._params(params), timeout=timeout if timeout is not None else self.timeout
            )
        except httpx.TimeoutException as e:
            raise RequestTimeout(f"Timed out calling {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Could not reach {endpoint}: {e}") from e
        return TransportResponse(status=response.status_code, body=response.text)

    async def aclose(self) -> None:
        if self._async_client is not None and not self._async_client.is_closed:
            await self._async_client.aclose()
        self._async_client = None

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None
