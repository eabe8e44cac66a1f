import logging
from typing import Any, List, Optional, Sequence, Tuple

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pinsync.domain.interfaces.user_interface import UserInterface
from pinsync.domain.models.bookmark import Bookmark

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 60


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_output(self, output: str, **kwargs: Any) -> None:
        self.console.print(output, style=kwargs.get("style"))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_bookmarks(self, bookmarks: List[Bookmark], **kwargs: Any) -> None:
        """Displays bookmarks as a table, newest first.

        Args:
            bookmarks: Bookmarks in display order.
            **kwargs: `title` overrides the table title.
        """
        logger.debug(f"Displaying {len(bookmarks)} bookmarks")
        if not bookmarks:
            self.display_info("No bookmarks to show.")
            return

        table = Table(
            title=kwargs.get("title", f"{len(bookmarks)} bookmark(s)"),
            show_header=True,
            box=ROUNDED,
            border_style="cyan",
            padding=(0, 1),
        )
        table.add_column("Date", style="dim", no_wrap=True)
        table.add_column("", no_wrap=True)  # flags
        table.add_column("Title", style="bold")
        table.add_column("URL", style="blue", overflow="fold")
        table.add_column("Tags", style="green")

        for bookmark in bookmarks:
            title = bookmark.title or bookmark.url
            if len(title) > MAX_TITLE_LENGTH:
                title = title[:MAX_TITLE_LENGTH - 3] + "..."
            flags = ("*" if bookmark.unread else " ") + (" " if bookmark.shared else "p")
            table.add_row(bookmark.time[:10], flags, title, bookmark.url, " ".join(bookmark.tags))

        self.console.print(table)

    def display_tags(self, tags: Sequence[Tuple[str, int]], **kwargs: Any) -> None:
        if not tags:
            self.display_info("No tags.")
            return
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Tag", style="green")
        table.add_column("Count", justify="right")
        for name, count in tags:
            table.add_row(name, str(count))
        self.console.print(table)
