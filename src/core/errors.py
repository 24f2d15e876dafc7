"""journaltail exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Configuration errors are unrecoverable; ingest errors end one session
but a supervised restart may succeed.
"""

from __future__ import annotations


class JournalTailError(Exception):
    """Base exception for all journaltail failures."""


class JournalTailConfigError(JournalTailError):
    """Raised for invalid runtime or input configuration."""


class JournalTailMatchError(JournalTailConfigError):
    """Raised when journalctl rejected the configured matches."""


class JournalTailIngestError(JournalTailError):
    """Raised when one ingestion session fails but may be restarted."""


class JournalTailProcessError(JournalTailIngestError):
    """Raised when the journalctl process cannot be started or exits."""


class JournalTailCheckpointError(JournalTailIngestError):
    """Raised when the cursor checkpoint cannot be read or written."""


class JournalTailSinkError(JournalTailIngestError):
    """Raised when a sink refuses or fails to accept an entry."""


class JournalTailRetryExhaustedError(JournalTailError):
    """Raised when supervised restarts exhaust the retry policy."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Journal input failed after {attempts} attempt(s): {last_error}. "
            "Check journalctl availability and the input configuration."
        )
