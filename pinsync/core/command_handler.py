"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the sync context: reads go straight to the SyncOrchestrator, bulk edits go
through the BookmarkService and its WorkQueue.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from pinsync.core.context import SyncContext
from pinsync.domain.errors import LogicError
from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.domain.models.bookmark import Bookmark
from pinsync.domain.models.common import BatchResult

logger = logging.getLogger(__name__)

BATCH_ACTIONS = ("tag", "untag", "mark-read", "mark-unread", "share", "unshare", "delete")


class CommandHandler:
    """Handles incoming commands and delegates to the sync context."""

    def __init__(self, context: SyncContext, ui: UserInterface):
        self.context = context
        self.ui = ui

    def load_bookmarks(self, force: bool = False) -> Optional[List[Bookmark]]:
        """Fetches bookmarks synchronously; displays the error and returns None on failure."""
        outcome: Dict[str, Any] = {}
        self.context.orchestrator.fetch(
            True,
            lambda bookmarks: outcome.update(bookmarks=bookmarks),
            force=force,
            on_failure=lambda message: outcome.update(error=message),
        )
        if "error" in outcome:
            self.ui.display_error(outcome["error"])
            return None
        return outcome.get("bookmarks")

    def handle_list(
        self,
        refresh: bool = False,
        tag: Optional[str] = None,
        unread_only: bool = False,
        limit: Optional[int] = None,
    ) -> bool:
        """Handles the 'list' command."""
        logger.info(f"Handling 'list' command (refresh={refresh}, tag={tag}, unread_only={unread_only})")
        bookmarks = self.load_bookmarks(force=refresh)
        if bookmarks is None:
            return False
        if tag:
            bookmarks = [b for b in bookmarks if b.has_tag(tag)]
        if unread_only:
            bookmarks = [b for b in bookmarks if b.unread]
        if limit:
            bookmarks = bookmarks[:limit]
        self.ui.display_bookmarks(bookmarks)
        return True

    def handle_tags(self) -> bool:
        """Handles the 'tags' command."""
        logger.info("Handling 'tags' command")
        if self.load_bookmarks() is None:
            return False
        self.ui.display_tags(self.context.orchestrator.tag_index.items())
        return True

    async def handle_batch(
        self,
        action: str,
        urls: Sequence[str],
        tags: Optional[Sequence[str]] = None,
    ) -> Optional[BatchResult]:
        """Handles the bulk edit commands, waiting until the queue has drained.

        Returns:
            The aggregate result, or None if nothing was queued.
        """
        logger.info(f"Handling '{action}' command for {len(urls)} bookmark(s)")
        service = self.context.bookmark_service
        operations: Dict[str, Callable[[Callable[[BatchResult], None]], int]] = {
            "tag": lambda done: service.add_tags(urls, tags or [], on_complete=done),
            "untag": lambda done: service.remove_tags(urls, tags or [], on_complete=done),
            "mark-read": lambda done: service.set_unread(urls, False, on_complete=done),
            "mark-unread": lambda done: service.set_unread(urls, True, on_complete=done),
            "share": lambda done: service.set_shared(urls, True, on_complete=done),
            "unshare": lambda done: service.set_shared(urls, False, on_complete=done),
            "delete": lambda done: service.delete(urls, on_complete=done),
        }
        if action not in operations:
            self.ui.display_error(f"Unknown action '{action}'. Choose one of: {', '.join(BATCH_ACTIONS)}.")
            return None

        if self.load_bookmarks() is None:
            return None

        outcome: Dict[str, BatchResult] = {}
        try:
            operations[action](lambda result: outcome.update(result=result))
        except LogicError as e:
            self.ui.display_error(str(e))
            return None

        try:
            await self.context.work_queue.join()
        finally:
            await self.context.transport.aclose()
        return outcome.get("result")

    def handle_clear_cache(self) -> bool:
        """Handles the 'clear-cache' command."""
        logger.info("Handling 'clear-cache' command")
        try:
            self.context.clear_cache()
        except OSError as e:
            logger.error(f"Failed to clear cache: {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")
            return False
        self.ui.display_info("Cache cleared.")
        return True
