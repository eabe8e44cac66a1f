"""Process-wide sync context.

Holds the rate limiter state, the request executor, the work queue and the
bookmark index behind one explicitly constructed object. `get_context()`
builds it from configuration on first use; `reset_context()` discards it.
`SyncContext.clear_cache()` is the user-facing cache clear.
"""

import logging
import time
from typing import Callable, Mapping, Optional

from pinsync.core.services.bookmark_service import BookmarkService
from pinsync.core.services.sync_orchestrator import SyncOrchestrator
from pinsync.domain.events.sync_events import DomainEvent
from pinsync.domain.interfaces.snapshot_store import SnapshotStore
from pinsync.domain.interfaces.transport import Transport
from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.infrastructure.cache.snapshot_store import FileSnapshotStore
from pinsync.infrastructure.config.settings import (
    get_api_base_url,
    get_auth_token,
    get_rate_intervals,
    get_request_timeout,
    get_snapshot_path,
    get_write_timeout,
)
from pinsync.infrastructure.resilience.rate_limiter import RateLimiter
from pinsync.infrastructure.resilience.request_executor import (
    DEFAULT_WRITE_TIMEOUT_SECONDS,
    RequestExecutor,
)
from pinsync.infrastructure.resilience.work_queue import WorkQueue
from pinsync.infrastructure.transport.http_transport import HttpxTransport

logger = logging.getLogger(__name__)


class SyncContext:
    """Wires the sync engine's components around one transport and snapshot."""

    def __init__(
        self,
        transport: Transport,
        snapshot_store: SnapshotStore,
        ui: Optional[UserInterface] = None,
        rate_intervals: Optional[Mapping[str, float]] = None,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
        event_sink: Optional[Callable[[DomainEvent], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.snapshot_store = snapshot_store
        self.ui = ui
        self.rate_limiter = RateLimiter(intervals=rate_intervals, clock=clock)
        self.executor = RequestExecutor(
            transport,
            self.rate_limiter,
            write_timeout=write_timeout,
            event_sink=event_sink,
            sleep=sleep,
            clock=clock,
        )
        self.work_queue = WorkQueue(self.executor)
        self.orchestrator = SyncOrchestrator(self.executor, snapshot_store, ui=ui)
        self.bookmark_service = BookmarkService(
            self.orchestrator, self.work_queue, ui=ui, write_timeout=write_timeout
        )

    @classmethod
    def from_config(cls, ui: Optional[UserInterface] = None) -> "SyncContext":
        """Builds a context from the loaded configuration.

        Raises:
            ConfigurationError: If no API token is configured.
        """
        transport = HttpxTransport(
            auth_token=get_auth_token(),
            base_url=get_api_base_url(),
            timeout=get_request_timeout(),
        )
        return cls(
            transport=transport,
            snapshot_store=FileSnapshotStore(get_snapshot_path()),
            ui=ui,
            rate_intervals=get_rate_intervals(),
            write_timeout=get_write_timeout(),
        )

    def clear_cache(self) -> None:
        """Empties the work queue, the in-memory index and the on-disk snapshot."""
        self.work_queue.reset()
        self.orchestrator.clear()
        self.snapshot_store.delete()
        logger.info("Cleared queued work, in-memory bookmarks and snapshot.")

    def close(self) -> None:
        self.transport.close()


_context: Optional[SyncContext] = None


def get_context(ui: Optional[UserInterface] = None) -> SyncContext:
    """Returns the process context, building it from configuration on first use."""
    global _context
    if _context is None:
        _context = SyncContext.from_config(ui=ui)
        logger.debug("Sync context created.")
    return _context


def set_context(context: Optional[SyncContext]) -> None:
    """Installs a prebuilt context (or None), e.g. one wired with test doubles."""
    global _context
    _context = context


def reset_context() -> None:
    """Closes and discards the process context."""
    global _context
    if _context is not None:
        _context.close()
    _context = None
