"""Sync Orchestrator: decides where the bookmark list comes from.

Owns the in-memory bookmark index and tag counts. A read is served from
memory when possible, otherwise from the on-disk snapshot or the server,
falling back through whichever sources remain when one of them fails. A hard
failure is reported only when no source could produce any bookmarks.

Server fetches pick between the full listing and the recent listing purely by
which endpoint's rate limit clears first. A full fetch rebuilds everything
and rewrites the snapshot; an incremental fetch merges the returned records
by URL and leaves the tag counts as they were (they catch up on the next full
fetch).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pinsync.domain.errors import DecodeError, SnapshotError
from pinsync.domain.interfaces.snapshot_store import SnapshotStore
from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.domain.models.bookmark import Bookmark, TagIndex
from pinsync.domain.models.common import (
    BookmarkUrl,
    FULL_LISTING_ENDPOINT,
    RECENT_LISTING_COUNT,
    RECENT_LISTING_ENDPOINT,
    UPDATE_TIME_ENDPOINT,
    WIRE_TIME_FORMAT,
)
from pinsync.infrastructure.resilience.request_executor import RequestExecutor

logger = logging.getLogger(__name__)

FetchCallback = Callable[[List[Bookmark]], None]
FailureCallback = Callable[[str], None]
DoneCallback = Callable[[bool], None]


def decode_listing(payload: Any) -> List[Bookmark]:
    """Turns a decoded listing (a list of wire records) into bookmarks.

    Raises:
        DecodeError: If the payload is not a list or a record is malformed.
    """
    if not isinstance(payload, list):
        raise DecodeError(f"Expected a list of bookmarks, got {type(payload).__name__}")
    return [Bookmark.from_wire(record) for record in payload]


def parse_update_time(payload: Any) -> Optional[datetime]:
    """Extracts the server's last-update time from an update-time response."""
    if not isinstance(payload, dict):
        return None
    raw = payload.get("update_time")
    if not isinstance(raw, str):
        return None
    try:
        return datetime.strptime(raw, WIRE_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class SyncOrchestrator:
    """Serves the bookmark list from memory, snapshot or server."""

    def __init__(
        self,
        executor: RequestExecutor,
        snapshot_store: SnapshotStore,
        ui: Optional[UserInterface] = None,
    ):
        self.executor = executor
        self.rate_limiter = executor.rate_limiter
        self.snapshot_store = snapshot_store
        self.ui = ui
        self._index: Dict[BookmarkUrl, Bookmark] = {}
        self.tag_index = TagIndex()

    # --- Index access ---

    @property
    def is_loaded(self) -> bool:
        return bool(self._index)

    def bookmarks(self) -> List[Bookmark]:
        """All bookmarks, newest first."""
        return sorted(self._index.values(), key=lambda b: (b.time, b.url), reverse=True)

    def get(self, url: str) -> Optional[Bookmark]:
        return self._index.get(BookmarkUrl(url))

    def replace_bookmark(self, bookmark: Bookmark) -> None:
        """Stores a server-confirmed version of a bookmark still in the index."""
        if bookmark.url not in self._index:
            logger.debug(f"Ignoring confirmed edit of {bookmark.url}; no longer loaded.")
            return
        self._index[bookmark.url] = bookmark

    def remove_bookmark(self, url: str) -> None:
        self._index.pop(BookmarkUrl(url), None)

    def clear(self) -> None:
        self._index.clear()
        self.tag_index.clear()

    # --- Fetch ---

    def fetch(
        self,
        synchronous: bool,
        callback: FetchCallback,
        force: bool = False,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        """Obtains the current bookmark list.

        Args:
            synchronous: Block until the list is available (or failed).
            callback: Receives the bookmarks; never called on hard failure.
            force: Ask the server even if bookmarks are already in memory.
            on_failure: Receives a message when every source failed.
        """
        blocking = synchronous

        def succeed() -> None:
            callback(self.bookmarks())

        def fail(message: str) -> None:
            logger.error(message)
            if on_failure is not None:
                on_failure(message)

        if self._index:
            if not force:
                logger.debug("Serving bookmarks from memory.")
                succeed()
                return

            def after_refresh(ok: bool) -> None:
                if not ok:
                    self._warn("Could not refresh bookmarks from the server; showing possibly stale data.")
                succeed()

            self._fetch_from_server(blocking, after_refresh)
            return

        if self.snapshot_store.exists():
            self._probe_then_load(blocking, succeed, fail)
            return

        def after_first_fetch(ok: bool) -> None:
            if ok:
                succeed()
            else:
                fail("Could not fetch bookmarks from the server and no local copy exists.")

        self._fetch_from_server(blocking, after_first_fetch)

    def _probe_then_load(
        self,
        blocking: bool,
        succeed: Callable[[], None],
        fail: FailureCallback,
    ) -> None:
        snapshot_time = self.snapshot_store.modified_time()

        def after_probe(ok: bool, payload: Any) -> None:
            server_time = parse_update_time(payload) if ok else None
            if server_time is None or snapshot_time is None:
                if ok:
                    logger.warning(f"Unusable update time in probe response: {payload!r}")
                logger.info("Update-time probe failed; loading the local snapshot.")
                if self._load_snapshot():
                    succeed()
                else:
                    fail("Could not reach the server and the local snapshot is unreadable.")
                return

            if server_time <= snapshot_time:
                logger.info("Snapshot is current; loading it.")
                if self._load_snapshot():
                    succeed()
                    return

                def after_reload(fetched: bool) -> None:
                    if fetched:
                        succeed()
                    else:
                        fail("The local snapshot was unreadable and the server fetch failed.")

                self._fetch_from_server(blocking, after_reload)
                return

            logger.info(f"Server has updates since {snapshot_time.isoformat()}; fetching.")

            def after_update(fetched: bool) -> None:
                if fetched:
                    succeed()
                elif self._load_snapshot():
                    self._warn("Could not fetch newer bookmarks from the server; showing the local snapshot.")
                    succeed()
                else:
                    fail("Could not fetch bookmarks from the server and the local snapshot is unreadable.")

            self._fetch_from_server(blocking, after_update)

        self.executor.execute(UPDATE_TIME_ENDPOINT, {}, after_probe, blocking=blocking)

    def _fetch_from_server(self, blocking: bool, done: DoneCallback) -> None:
        full_wait = self.rate_limiter.wait_time(FULL_LISTING_ENDPOINT)
        recent_wait = self.rate_limiter.wait_time(RECENT_LISTING_ENDPOINT)
        if full_wait > 0 and recent_wait > 0:
            logger.warning(
                f"Both listings are rate limited (full: {full_wait:.0f}s, recent: {recent_wait:.0f}s); "
                f"not fetching."
            )
            done(False)
            return
        if full_wait <= recent_wait:
            self._full_fetch(blocking, done)
        else:
            self._incremental_fetch(blocking, done)

    def _full_fetch(self, blocking: bool, done: DoneCallback) -> None:
        def after(ok: bool, payload: Any) -> None:
            if not ok:
                done(False)
                return
            try:
                bookmarks = decode_listing(payload)
            except DecodeError as e:
                logger.warning(f"Full listing could not be decoded: {e}")
                done(False)
                return
            self._replace_all(bookmarks)
            try:
                self.snapshot_store.save(payload)
            except SnapshotError as e:
                logger.warning(f"Fetched bookmarks but could not persist the snapshot: {e}")
            logger.info(f"Full fetch loaded {len(self._index)} bookmarks.")
            done(True)

        logger.info("Fetching the full bookmark listing.")
        self.executor.execute(FULL_LISTING_ENDPOINT, {}, after, blocking=blocking)

    def _incremental_fetch(self, blocking: bool, done: DoneCallback) -> None:
        def after(ok: bool, payload: Any) -> None:
            if not ok:
                done(False)
                return
            records = payload.get("posts") if isinstance(payload, dict) else payload
            try:
                bookmarks = decode_listing(records)
            except DecodeError as e:
                logger.warning(f"Recent listing could not be decoded: {e}")
                done(False)
                return
            for bookmark in bookmarks:
                self._index[bookmark.url] = bookmark
            # Tag counts are left as-is until the next full fetch
            logger.info(f"Incremental fetch merged {len(bookmarks)} bookmarks.")
            done(True)

        logger.info("Fetching recent bookmarks.")
        self.executor.execute(
            RECENT_LISTING_ENDPOINT, {"count": RECENT_LISTING_COUNT}, after, blocking=blocking
        )

    def _load_snapshot(self) -> bool:
        """Loads the snapshot into memory; deletes it if it cannot be used."""
        try:
            bookmarks = decode_listing(self.snapshot_store.load())
        except (SnapshotError, DecodeError) as e:
            logger.warning(f"Discarding unusable snapshot: {e}")
            self.snapshot_store.delete()
            return False
        self._replace_all(bookmarks)
        logger.info(f"Loaded {len(self._index)} bookmarks from the snapshot.")
        return True

    def _replace_all(self, bookmarks: List[Bookmark]) -> None:
        self._index = {bookmark.url: bookmark for bookmark in bookmarks}
        self.tag_index.rebuild(self._index.values())

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.ui is not None:
            self.ui.display_warning(message)
