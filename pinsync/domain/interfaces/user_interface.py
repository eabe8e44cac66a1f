"""Interface for interacting with the user (output only).

Defines the contract for displaying bookmarks, tag counts, information,
warnings and errors, allowing different UI implementations
(e.g., console, TUI).
"""

import abc
from typing import Any, List, Sequence, Tuple

from pinsync.domain.models.bookmark import Bookmark


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The string to display.
            **kwargs: Additional arguments for formatting (e.g., style).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_bookmarks(self, bookmarks: List[Bookmark], **kwargs: Any) -> None:
        """Displays a list of bookmarks.

        Args:
            bookmarks: Bookmarks in display order.
            **kwargs: Additional display options (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_tags(self, tags: Sequence[Tuple[str, int]], **kwargs: Any) -> None:
        """Displays (tag, count) pairs."""
        pass
