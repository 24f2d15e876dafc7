"""Journal cursor checkpoint persistence.

This module stores the cursor of the last dispatched journal entry.
It enables resume behavior across process and host restarts.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO

from core.constants import CHECKPOINT_DIR_NAME, CHECKPOINT_FILE_SUFFIX
from core.errors import JournalTailCheckpointError


def checkpoint_path_for(data_root: Path, input_name: str) -> Path:
    """Return the checkpoint file path for a named journal input."""
    return data_root / CHECKPOINT_DIR_NAME / f"{input_name}{CHECKPOINT_FILE_SUFFIX}"


class CursorCheckpointStore:
    """Filesystem-backed single-cursor checkpoint store.

    The file holds only the cursor text and is truncated and rewritten
    on every write.
    """

    def __init__(self, checkpoint_path: Path) -> None:
        self._path = checkpoint_path
        self._file: BinaryIO | None = None

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str | None:
        """Read the persisted cursor.

        Returns:
            Cursor text, or None when no checkpoint exists yet.

        Raises:
            JournalTailCheckpointError: If the checkpoint cannot be read.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                return None
            cursor = self._path.read_text(encoding="utf-8").rstrip("\n")
        except (OSError, UnicodeDecodeError) as error:
            raise JournalTailCheckpointError(
                f"Failed to read journal checkpoint at {self._path}: {error}. "
                "Fix file permissions or delete the checkpoint to start over."
            ) from error
        return cursor or None

    def write(self, cursor: str) -> None:
        """Persist ``cursor``, replacing any previous checkpoint.

        Raises:
            JournalTailCheckpointError: If the checkpoint cannot be written.
        """
        try:
            if self._file is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self._path, "wb")
            self._file.seek(0)
            self._file.truncate(0)
            self._file.write(cursor.encode("utf-8"))
            self._file.flush()
            os.fsync(self._file.fileno())
        except OSError as error:
            raise JournalTailCheckpointError(
                f"Failed to write journal checkpoint at {self._path}: {error}. "
                "Check disk space and permissions for the data root."
            ) from error

    def clear(self) -> None:
        """Remove the checkpoint file so the next run starts without a cursor."""
        self.close()
        try:
            self._path.unlink(missing_ok=True)
        except OSError as error:
            raise JournalTailCheckpointError(
                f"Failed to remove journal checkpoint at {self._path}: {error}."
            ) from error

    def close(self) -> None:
        """Close the lazily opened checkpoint file handle."""
        if self._file is not None:
            self._file.close()
            self._file = None
