"""Service for executing single API calls under the rate limiter.

Waits for the endpoint's bucket to clear, stamps the request time, sends the
call, feeds too-many-requests answers back into the limiter's backoff and
decodes the payload. Every outcome collapses into `callback(success, payload)`;
there is no automatic retry.

Two modes are supported: blocking (the caller, and with it the whole event
loop, is suspended until the call resolves) and non-blocking (the call runs as
continuations on the running asyncio loop). The write-oriented
`execute_with_timeout` wrapper adds a timer racing the real completion; the
callback fires exactly once, whichever side wins.
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Optional, Tuple

from pinsync.domain.errors import PinsyncError, RateLimited, RequestTimeout
from pinsync.domain.events.sync_events import (
    ApiCallDeferred,
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    RateLimitBackoffApplied,
    RequestTimedOut,
)
from pinsync.domain.interfaces.transport import Transport, TransportResponse
from pinsync.domain.models.common import Endpoint
from pinsync.domain.models.work_item import RequestCallback
from pinsync.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_WRITE_TIMEOUT_SECONDS = 10.0


class _PendingCall:
    """Tracks one non-blocking call so its callback fires at most once."""

    def __init__(self, endpoint: Endpoint, callback: RequestCallback):
        self.endpoint = endpoint
        self.callback = callback
        self.done = False
        self.timer: Optional[asyncio.TimerHandle] = None
        self.delay_handle: Optional[asyncio.TimerHandle] = None
        self.task: Optional[asyncio.Task] = None

    def finish(self) -> bool:
        """Claims the right to invoke the callback. False if already claimed."""
        if self.done:
            return False
        self.done = True
        if self.timer is not None:
            self.timer.cancel()
        return True


class RequestExecutor:
    """Issues one API call at a time on behalf of the queue and the orchestrator."""

    def __init__(
        self,
        transport: Transport,
        rate_limiter: RateLimiter,
        decoder: Callable[[str], Any] = json.loads,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
        event_sink: Optional[Callable[[DomainEvent], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """Initializes the RequestExecutor.

        Args:
            transport: Transport used to send calls.
            rate_limiter: Shared per-endpoint limiter.
            decoder: Turns a response body into a payload; raising
                any exception marks the call failed.
            write_timeout: Default seconds for `execute_with_timeout`.
            event_sink: Optional receiver of domain events.
            sleep: Blocking sleep used by blocking mode.
            clock: Monotonic time source for blocking-mode deadlines.
            loop: Event loop for non-blocking mode (the running loop if None).
        """
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.decoder = decoder
        self.write_timeout = write_timeout
        self.event_sink = event_sink
        self._sleep = sleep
        self._clock = clock
        self._loop = loop
        logger.info(f"RequestExecutor initialized: write_timeout={write_timeout:g}s")

    # --- Public API ---

    def execute(
        self,
        endpoint: Endpoint,
        params: Optional[dict],
        callback: RequestCallback,
        *,
        blocking: bool = False,
    ) -> None:
        """Sends one call, respecting the endpoint's rate limit.

        Args:
            endpoint: API method path.
            params: Query parameters.
            callback: Receives (success, payload); payload is None on failure.
            blocking: Suspend the caller until the call resolves.
        """
        params = dict(params or {})
        if blocking:
            self._execute_blocking(endpoint, params, callback, timeout=None)
            return
        self._schedule(_PendingCall(endpoint, callback), params)

    def execute_with_timeout(
        self,
        endpoint: Endpoint,
        params: Optional[dict],
        callback: RequestCallback,
        *,
        blocking: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        """Like `execute`, but reports failure if nothing completes within `timeout`.

        The timeout covers the rate-limit wait as well as the call itself. A
        real response arriving after the timeout is discarded.
        """
        effective_timeout = self.write_timeout if timeout is None else timeout
        params = dict(params or {})
        if blocking:
            self._execute_blocking(endpoint, params, callback, timeout=effective_timeout)
            return
        pending = _PendingCall(endpoint, callback)
        pending.timer = self._get_loop().call_later(
            effective_timeout, self._on_timeout, pending, effective_timeout
        )
        self._schedule(pending, params)

    # --- Non-blocking mode ---

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def _schedule(self, pending: _PendingCall, params: dict) -> None:
        wait = self.rate_limiter.wait_time(pending.endpoint)
        if wait > 0:
            bucket = self.rate_limiter.classify(pending.endpoint)
            logger.info(f"Deferring {pending.endpoint} for {wait:.1f}s (rate limit on '{bucket}').")
            self._emit(ApiCallDeferred(endpoint=pending.endpoint, bucket=bucket, wait_time_seconds=wait))
            pending.delay_handle = self._get_loop().call_later(wait, self._start, pending, params)
        else:
            self._start(pending, params)

    def _start(self, pending: _PendingCall, params: dict) -> None:
        if pending.done:
            return
        pending.delay_handle = None
        pending.task = self._get_loop().create_task(self._send_async(pending, params))

    async def _send_async(self, pending: _PendingCall, params: dict) -> None:
        endpoint = pending.endpoint
        started = self._before_send(endpoint)
        try:
            response = await self.transport.issue_async(endpoint, params)
        except PinsyncError as e:
            self._report_transport_error(endpoint, e)
            self._deliver(pending, False, None)
            return
        except Exception as e:
            logger.error(f"Unexpected error calling {endpoint}: {e}", exc_info=True)
            self._emit(ApiCallFailed(endpoint=endpoint, error_type=type(e).__name__, error_message=str(e)))
            self._deliver(pending, False, None)
            return
        try:
            success, payload = self._handle_response(endpoint, response, started)
        except Exception as e:
            logger.error(f"Unexpected error handling response from {endpoint}: {e}", exc_info=True)
            success, payload = False, None
        self._deliver(pending, success, payload)

    def _deliver(self, pending: _PendingCall, success: bool, payload: Any) -> None:
        if not pending.finish():
            logger.debug(f"Discarding late completion of {pending.endpoint}.")
            return
        self._invoke(pending.callback, success, payload)

    def _on_timeout(self, pending: _PendingCall, timeout: float) -> None:
        if not pending.finish():
            return
        logger.warning(f"Request to {pending.endpoint} timed out after {timeout:g}s.")
        self._emit(RequestTimedOut(endpoint=pending.endpoint, timeout_seconds=timeout))
        if pending.delay_handle is not None:
            pending.delay_handle.cancel()
        if pending.task is not None and not pending.task.done():
            pending.task.cancel()
        self._invoke(pending.callback, False, None)

    def _invoke(self, callback: RequestCallback, success: bool, payload: Any) -> None:
        # Errors collapse here in both modes; callers only ever see (success, payload)
        try:
            callback(success, payload)
        except Exception as e:
            logger.error(f"Request callback raised: {e}", exc_info=True)

    # --- Blocking mode ---

    def _execute_blocking(
        self,
        endpoint: Endpoint,
        params: dict,
        callback: RequestCallback,
        timeout: Optional[float],
    ) -> None:
        deadline = None if timeout is None else self._clock() + timeout
        wait = self.rate_limiter.wait_time(endpoint)
        if wait > 0:
            bucket = self.rate_limiter.classify(endpoint)
            self._emit(ApiCallDeferred(endpoint=endpoint, bucket=bucket, wait_time_seconds=wait))
            if timeout is not None and wait >= timeout:
                logger.info(f"Rate limit wait of {wait:.1f}s on {endpoint} exceeds the {timeout:g}s timeout.")
                self._sleep(timeout)
                self._emit(RequestTimedOut(endpoint=endpoint, timeout_seconds=timeout))
                self._invoke(callback, False, None)
                return
            logger.info(f"Waiting {wait:.1f}s before calling {endpoint} (rate limit on '{bucket}').")
            self._sleep(wait)

        remaining = None if deadline is None else max(0.0, deadline - self._clock())
        started = self._before_send(endpoint)
        try:
            response = self.transport.issue(endpoint, params, timeout=remaining)
        except RequestTimeout as e:
            self._report_transport_error(endpoint, e)
            self._emit(RequestTimedOut(endpoint=endpoint, timeout_seconds=timeout or 0.0))
            self._invoke(callback, False, None)
            return
        except PinsyncError as e:
            self._report_transport_error(endpoint, e)
            self._invoke(callback, False, None)
            return
        success, payload = self._handle_response(endpoint, response, started)
        self._invoke(callback, success, payload)

    # --- Shared steps ---

    def _before_send(self, endpoint: Endpoint) -> float:
        self.rate_limiter.record_request(endpoint)
        self._emit(ApiCallInitiated(endpoint=endpoint, bucket=self.rate_limiter.classify(endpoint)))
        return time.perf_counter()

    def _handle_response(
        self, endpoint: Endpoint, response: TransportResponse, started: float
    ) -> Tuple[bool, Any]:
        if response.is_rate_limited:
            backoff = self.rate_limiter.note_rate_limited(endpoint)
            error = RateLimited(endpoint, backoff)
            self._emit(RateLimitBackoffApplied(
                endpoint=endpoint, bucket=self.rate_limiter.classify(endpoint), backoff_seconds=backoff
            ))
            self._emit(ApiCallFailed(
                endpoint=endpoint, error_type=type(error).__name__, error_message=str(error),
                status=response.status,
            ))
            return False, None

        self.rate_limiter.clear_backoff(endpoint)
        if not response.ok:
            logger.warning(f"{endpoint} answered HTTP {response.status}.")
            self._emit(ApiCallFailed(
                endpoint=endpoint, error_type="NetworkError",
                error_message=f"HTTP {response.status}", status=response.status,
            ))
            return False, None

        try:
            payload = self.decoder(response.body)
        except Exception as e:
            # RecursionError on deeply nested JSON, among others
            logger.warning(f"Could not decode response from {endpoint}: {e}")
            self._emit(ApiCallFailed(
                endpoint=endpoint, error_type="DecodeError", error_message=str(e), status=response.status,
            ))
            return False, None

        latency_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"{endpoint} succeeded in {latency_ms:.0f}ms.")
        self._emit(ApiCallSucceeded(endpoint=endpoint, latency_ms=latency_ms))
        return True, payload

    def _report_transport_error(self, endpoint: Endpoint, error: PinsyncError) -> None:
        logger.warning(f"Request to {endpoint} failed: {error}")
        self._emit(ApiCallFailed(endpoint=endpoint, error_type=type(error).__name__, error_message=str(error)))

    def _emit(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_sink is None:
            return
        try:
            self.event_sink(event)
        except Exception as e:
            logger.error(f"Event sink raised on {type(event).__name__}: {e}", exc_info=True)
