"""Named journal input spanning restarts.

This module prepares journalctl sessions from checkpoint state and keeps
the failure flags that must survive a restart: a cursor journalctl could
not seek to is dropped, and rejected matches stop further restarts.
"""

from __future__ import annotations

import asyncio

from core.config import JournalTailConfig
from core.errors import JournalTailMatchError, JournalTailProcessError
from core.logging_config import get_logger
from core.types import FailureKind, JournalInputOptions, SessionOutcome
from ingest.checkpoint_store import CursorCheckpointStore, checkpoint_path_for
from ingest.coordinator import IngestionCoordinator
from ingest.process_session import JournalProcessSession, build_journal_command
from ingest.sinks import EntrySink

_LOGGER = get_logger(__name__)


class JournalInput:
    """Stateful journal input executed as a series of sessions."""

    def __init__(self, options: JournalInputOptions, config: JournalTailConfig) -> None:
        self._options = options
        self._config = config
        self._checkpoint = CursorCheckpointStore(
            checkpoint_path_for(config.data_root, options.name)
        )
        self._cursor: str | None = None
        self._drop_cursor = False
        self._bad_matches = False

    @property
    def name(self) -> str:
        return self._options.name

    @property
    def cursor(self) -> str | None:
        """Resume cursor used by the most recently prepared session."""
        return self._cursor

    @property
    def drop_cursor(self) -> bool:
        """Whether the next session must start without the stored cursor."""
        return self._drop_cursor

    @property
    def bad_matches(self) -> bool:
        """Whether journalctl rejected the configured matches."""
        return self._bad_matches

    def prepare(self) -> list[str]:
        """Load checkpoint state and build the next session command.

        Returns:
            journalctl command line for the next session.

        Raises:
            JournalTailMatchError: If a previous session reported bad matches.
            JournalTailCheckpointError: If the checkpoint cannot be read.
        """
        if self._bad_matches:
            raise JournalTailMatchError(
                f"journalctl rejected matches {list(self._options.matches)} "
                f"for input '{self.name}'. Fix 'matches' in the input configuration."
            )
        drop = self._drop_cursor
        self._drop_cursor = False
        cursor = self._checkpoint.read()
        if drop and cursor is not None:
            _LOGGER.warning("journal_cursor_dropped", input_name=self.name, cursor=cursor)
            self._checkpoint.clear()
            cursor = None
        self._cursor = cursor
        return build_journal_command(
            self._options.binary,
            cursor,
            self._options.matches,
            self._options.offset_method,
        )

    async def run_session(self, sink: EntrySink, stop_event: asyncio.Event) -> SessionOutcome:
        """Run one journalctl session to completion.

        Args:
            sink: Receiver of dispatched entries.
            stop_event: External stop request shared with the caller.

        Returns:
            Session outcome of a session ended by a stop request.

        Raises:
            JournalTailConfigError: If the input cannot be restarted as configured.
            JournalTailIngestError: If the session fails or journalctl exits on its
                own; either may be retried.
        """
        command = self.prepare()
        coordinator = IngestionCoordinator(
            JournalProcessSession(command),
            self._checkpoint,
            sink,
            stop_event,
            input_name=self.name,
            prior_cursor=self._cursor,
            max_record_size=self._config.max_record_size,
            queue_size=self._config.queue_size,
        )
        try:
            outcome = await coordinator.run()
        finally:
            self._record_failures(coordinator.failures)
        _LOGGER.info(
            "journal_session_finished",
            input_name=self.name,
            process_state=outcome.process_state,
            return_code=outcome.return_code,
            stopped=outcome.stopped,
            **outcome.stats.as_dict(),
        )
        if not outcome.stopped:
            raise JournalTailProcessError(
                f"journalctl for input '{self.name}' exited unexpectedly with status "
                f"{outcome.return_code}. A followed journal only ends on request."
            )
        return outcome

    def close(self) -> None:
        """Release the checkpoint file handle."""
        self._checkpoint.close()

    def _record_failures(self, failures: tuple[FailureKind, ...]) -> None:
        if "invalid_cursor" in failures:
            self._drop_cursor = True
        if "invalid_matches" in failures:
            self._bad_matches = True
