"""Strictly ordered queue of API requests and callbacks.

Items drain one at a time in insertion order: a `Callback` runs inline, a
`Request` is handed to the RequestExecutor and the drain loop suspends until
that request reports back. At most one queued request is in flight at any
moment, which keeps concurrent writes from interleaving their updates to the
shared bookmark index.

A failed item reports to its own callback only; draining always continues.
"""

import asyncio
import functools
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from pinsync.domain.models.common import Endpoint
from pinsync.domain.models.work_item import Callback, Request, RequestCallback, WorkItem
from pinsync.infrastructure.resilience.request_executor import RequestExecutor

logger = logging.getLogger(__name__)


class WorkQueue:
    """FIFO of work items drained sequentially on the event loop."""

    def __init__(self, executor: RequestExecutor, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.executor = executor
        self._loop = loop
        self._items: Deque[WorkItem] = deque()
        self._in_flight: Optional[Request] = None
        self._scheduled = False
        self._draining = False
        self._idle_event: Optional[asyncio.Event] = None

    # --- Enqueueing ---

    def enqueue(self, item: WorkItem) -> None:
        """Appends an item; starts draining on a fresh loop turn if the queue was idle."""
        if not isinstance(item, (Request, Callback)):
            raise TypeError(f"Unsupported work item: {item!r}")
        was_empty = not self._items
        self._items.append(item)
        logger.debug(f"Enqueued {type(item).__name__}; {len(self._items)} pending.")
        if was_empty and not self._busy:
            self._schedule_drain()

    def enqueue_request(
        self,
        endpoint: Endpoint,
        params: Optional[Dict[str, Any]] = None,
        callback: Optional[RequestCallback] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.enqueue(Request(endpoint=endpoint, params=dict(params or {}), callback=callback, timeout=timeout))

    def enqueue_callback(self, fn: Callable[[], None]) -> None:
        self.enqueue(Callback(fn=fn))

    def reset(self) -> None:
        """Drops every pending item. A request already in flight still reports back."""
        dropped = len(self._items)
        self._items.clear()
        if dropped:
            logger.info(f"Work queue reset; dropped {dropped} pending item(s).")
        if self.is_idle:
            self._notify_idle()

    # --- State ---

    @property
    def pending(self) -> int:
        return len(self._items)

    @property
    def in_flight(self) -> Optional[Request]:
        return self._in_flight

    @property
    def _busy(self) -> bool:
        return self._in_flight is not None or self._scheduled or self._draining

    @property
    def is_idle(self) -> bool:
        return not self._items and not self._busy

    async def join(self) -> None:
        """Waits until every queued item has been processed."""
        if self.is_idle:
            return
        if self._idle_event is None:
            self._idle_event = asyncio.Event()
        await self._idle_event.wait()

    # --- Draining ---

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def _schedule_drain(self) -> None:
        self._scheduled = True
        self._get_loop().call_soon(self._drain)

    def _drain(self) -> None:
        self._scheduled = False
        self._draining = True
        try:
            while self._items and self._in_flight is None:
                item = self._items.popleft()
                if isinstance(item, Callback):
                    self._run_callback(item)
                else:
                    self._in_flight = item
                    self._dispatch(item)
        finally:
            self._draining = False
        if self.is_idle:
            self._notify_idle()

    def _dispatch(self, item: Request) -> None:
        done = functools.partial(self._on_request_done, item)
        try:
            if item.timeout is not None:
                self.executor.execute_with_timeout(item.endpoint, item.params, done, timeout=item.timeout)
            else:
                self.executor.execute(item.endpoint, item.params, done)
        except Exception as e:
            logger.error(f"Could not dispatch queued request to {item.endpoint}: {e}", exc_info=True)
            self._on_request_done(item, False, None)

    def _on_request_done(self, item: Request, success: bool, payload: Any) -> None:
        try:
            if item.callback is not None:
                item.callback(success, payload)
        except Exception as e:
            logger.error(f"Callback for queued request to {item.endpoint} raised: {e}", exc_info=True)
        finally:
            self._in_flight = None
            if self._items:
                if not self._draining:
                    self._schedule_drain()
            elif self.is_idle:
                self._notify_idle()

    def _run_callback(self, item: Callback) -> None:
        try:
            item.fn()
        except Exception as e:
            logger.error(f"Queued callback raised: {e}", exc_info=True)

    def _notify_idle(self) -> None:
        if self._idle_event is not None:
            self._idle_event.set()
            self._idle_event = None
