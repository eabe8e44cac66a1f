"""Concrete implementation of the SnapshotStore interface on the local disk.

Keeps the decoded full bookmark listing as one JSON file. Writes go through a
temporary file and `os.replace` so a crash never leaves a half-written
snapshot behind; the file's modification time doubles as the snapshot's
timestamp when compared with the server's last-update time.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pinsync.domain.errors import SnapshotError
from pinsync.domain.interfaces.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_DIR = Path.home() / ".pinsync" / "cache"
DEFAULT_SNAPSHOT_NAME = "bookmarks.json"


class FileSnapshotStore(SnapshotStore):
    """JSON snapshot stored at a single path."""

    def __init__(self, path: Path = DEFAULT_SNAPSHOT_DIR / DEFAULT_SNAPSHOT_NAME):
        """Initializes the store; the parent directory is created on first save."""
        self.path = Path(path)
        logger.info(f"FileSnapshotStore initialized at: {self.path}")

    def exists(self) -> bool:
        return self.path.is_file()

    def modified_time(self) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(self.path.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return None

    def load(self) -> Any:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError as e:
            raise SnapshotError(f"No snapshot at {self.path}") from e
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read or parse snapshot {self.path}: {e}")
            raise SnapshotError(f"Unreadable snapshot at {self.path}: {e}") from e
        logger.debug(f"Loaded snapshot from {self.path}")
        return payload

    def save(self, payload: Any) -> None:
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            # os.replace is atomic on both Windows and Unix
            os.replace(temp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write snapshot {self.path}: {e}")
            temp_path.unlink(missing_ok=True)
            raise SnapshotError(f"Could not write snapshot at {self.path}: {e}") from e
        logger.debug(f"Stored snapshot at {self.path}")

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
            logger.info(f"Deleted snapshot {self.path}")
        except OSError as e:
            logger.warning(f"Failed to delete snapshot {self.path}: {e}")
