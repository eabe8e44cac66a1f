"""Interface for the on-disk bookmark snapshot.

Defines the contract for persisting the decoded full listing so the next
start can serve bookmarks without a full fetch.
"""

import abc
from datetime import datetime
from typing import Any, Optional


class SnapshotStore(abc.ABC):
    """Abstract Base Class for snapshot persistence."""

    @abc.abstractmethod
    def exists(self) -> bool:
        """Returns True if a snapshot is present."""
        pass

    @abc.abstractmethod
    def modified_time(self) -> Optional[datetime]:
        """Returns the snapshot's last write time (UTC), or None if absent."""
        pass

    @abc.abstractmethod
    def load(self) -> Any:
        """Reads the snapshot payload.

        Raises:
            SnapshotError: If the snapshot is missing or cannot be decoded.
        """
        pass

    @abc.abstractmethod
    def save(self, payload: Any) -> None:
        """Atomically replaces the snapshot with `payload`.

        Raises:
            SnapshotError: If the snapshot could not be written.
        """
        pass

    @abc.abstractmethod
    def delete(self) -> None:
        """Removes the snapshot if present."""
        pass
