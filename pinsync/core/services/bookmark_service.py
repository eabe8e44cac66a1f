"""Bookmark Service: batched edits pushed through the WorkQueue.

Each selected bookmark becomes one queued write carrying the write timeout.
The modified copy replaces the stored bookmark only once the server confirms
the write; a final queued callback reports how many writes succeeded and
failed.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pinsync.core.services.sync_orchestrator import SyncOrchestrator
from pinsync.domain.errors import LogicError
from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.domain.models.bookmark import Bookmark
from pinsync.domain.models.common import ADD_ENDPOINT, BatchResult, DELETE_ENDPOINT, Endpoint
from pinsync.infrastructure.resilience.request_executor import DEFAULT_WRITE_TIMEOUT_SECONDS
from pinsync.infrastructure.resilience.work_queue import WorkQueue

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[BatchResult], None]

# (endpoint, params, url, applied on confirmation)
_Write = Tuple[Endpoint, Dict[str, Any], str, Callable[[], None]]


def write_confirmed(payload: Any) -> bool:
    """True if a write response reports success."""
    return isinstance(payload, dict) and payload.get("result_code") == "done"


def _clean_tags(tags: Iterable[str]) -> List[str]:
    cleaned = []
    for tag in tags:
        cleaned.extend(part for part in tag.split() if part)
    return cleaned


class BookmarkService:
    """Queues bulk mutations and applies them to the index once confirmed."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        work_queue: WorkQueue,
        ui: Optional[UserInterface] = None,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
    ):
        self.orchestrator = orchestrator
        self.work_queue = work_queue
        self.ui = ui
        self.write_timeout = write_timeout

    # --- Operations ---

    def add_tags(self, urls: Iterable[str], tags: Iterable[str],
                 on_complete: Optional[CompletionCallback] = None) -> int:
        """Adds tags to every selected bookmark. Returns the number of queued writes."""
        new_tags = _clean_tags(tags)
        if not new_tags:
            raise LogicError("No tags to add.")
        changes = self._changes(urls, lambda b: b.with_tags_added(new_tags))
        if not changes:
            raise LogicError("Every selected bookmark already has those tags.")
        return self._submit([self._update(old, new) for old, new in changes], "Tagging", on_complete)

    def remove_tags(self, urls: Iterable[str], tags: Iterable[str],
                    on_complete: Optional[CompletionCallback] = None) -> int:
        """Removes tags from the selected bookmarks that carry them."""
        old_tags = _clean_tags(tags)
        if not old_tags:
            raise LogicError("No tags to remove.")
        changes = self._changes(urls, lambda b: b.with_tags_removed(old_tags))
        if not changes:
            raise LogicError("None of the selected bookmarks carry those tags; no tags to remove.")
        return self._submit([self._update(old, new) for old, new in changes], "Untagging", on_complete)

    def set_unread(self, urls: Iterable[str], unread: bool,
                   on_complete: Optional[CompletionCallback] = None) -> int:
        changes = self._changes(urls, lambda b: b.with_unread(unread))
        if not changes:
            raise LogicError(f"Every selected bookmark is already marked {'unread' if unread else 'read'}.")
        description = "Marking unread" if unread else "Marking read"
        return self._submit([self._update(old, new) for old, new in changes], description, on_complete)

    def set_shared(self, urls: Iterable[str], shared: bool,
                   on_complete: Optional[CompletionCallback] = None) -> int:
        changes = self._changes(urls, lambda b: b.with_shared(shared))
        if not changes:
            raise LogicError(f"Every selected bookmark is already {'shared' if shared else 'private'}.")
        description = "Sharing" if shared else "Unsharing"
        return self._submit([self._update(old, new) for old, new in changes], description, on_complete)

    def delete(self, urls: Iterable[str], on_complete: Optional[CompletionCallback] = None) -> int:
        writes: List[_Write] = []
        for bookmark in self._select(urls):
            url = bookmark.url
            writes.append((DELETE_ENDPOINT, {"url": url}, url,
                           lambda url=url: self.orchestrator.remove_bookmark(url)))
        return self._submit(writes, "Deleting", on_complete)

    # --- Helpers ---

    def _select(self, urls: Iterable[str]) -> List[Bookmark]:
        selected: List[Bookmark] = []
        seen = set()
        for url in urls:
            if url in seen:
                continue
            seen.add(url)
            bookmark = self.orchestrator.get(url)
            if bookmark is None:
                raise LogicError(f"Unknown bookmark: {url}")
            selected.append(bookmark)
        if not selected:
            raise LogicError("No bookmarks selected.")
        return selected

    def _changes(self, urls: Iterable[str],
                 change: Callable[[Bookmark], Bookmark]) -> List[Tuple[Bookmark, Bookmark]]:
        pairs = [(bookmark, change(bookmark)) for bookmark in self._select(urls)]
        return [(old, new) for old, new in pairs if new != old]

    def _update(self, old: Bookmark, new: Bookmark) -> _Write:
        return (ADD_ENDPOINT, new.to_add_params(), old.url,
                lambda: self.orchestrator.replace_bookmark(new))

    def _submit(self, writes: List[_Write], description: str,
                on_complete: Optional[CompletionCallback]) -> int:
        result = BatchResult(succeeded=0, failed=0)

        for endpoint, params, url, apply in writes:
            def callback(success: bool, payload: Any, url: str = url, apply: Callable[[], None] = apply) -> None:
                if success and write_confirmed(payload):
                    apply()
                    result["succeeded"] += 1
                else:
                    logger.warning(f"{description} {url} failed: {payload!r}")
                    result["failed"] += 1

            self.work_queue.enqueue_request(endpoint, params, callback, timeout=self.write_timeout)

        self.work_queue.enqueue_callback(lambda: self._report(description, result, on_complete))
        logger.info(f"{description}: queued {len(writes)} write(s).")
        return len(writes)

    def _report(self, description: str, result: BatchResult,
                on_complete: Optional[CompletionCallback]) -> None:
        message = f"{description}: {result['succeeded']} succeeded, {result['failed']} failed."
        logger.info(message)
        if self.ui is not None:
            if result["failed"]:
                self.ui.display_warning(message)
            else:
                self.ui.display_info(message)
        if on_complete is not None:
            on_complete(BatchResult(succeeded=result["succeeded"], failed=result["failed"]))
