"""Ingestion coordinator for one journalctl session.

This module wires process output through the parser into entries,
dispatches them to a sink in source order, and checkpoints the cursor
of every dispatched entry before the next one is taken.

Three asyncio tasks run per session: the stdout reader that parses
entries, the stderr line scanner, and the dispatch loop. They share only
two bounded queues and the stop event.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from core.constants import DEFAULT_QUEUE_SIZE
from core.logging_config import get_logger
from core.types import FailureKind, IngestionStats, JournalEntry, ProcessState, SessionOutcome
from ingest.checkpoint_store import CursorCheckpointStore
from ingest.diagnostics import classify_diagnostic
from ingest.entry_stream import EntryReader
from ingest.export_parser import ExportStreamParser
from ingest.sinks import EntrySink

_LOGGER = get_logger(__name__)


class ProcessSession(Protocol):
    """Process boundary consumed by the coordinator."""

    @property
    def stdout(self) -> asyncio.StreamReader: ...

    @property
    def stderr(self) -> asyncio.StreamReader: ...

    @property
    def return_code(self) -> int | None: ...

    async def start(self) -> None: ...

    async def wait(self) -> ProcessState: ...

    async def terminate(self) -> ProcessState: ...


class IngestionCoordinator:
    """Drive one session from process start to stream closure or stop."""

    def __init__(
        self,
        session: ProcessSession,
        checkpoint: CursorCheckpointStore,
        sink: EntrySink,
        stop_event: asyncio.Event,
        *,
        input_name: str,
        prior_cursor: str | None = None,
        max_record_size: int,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._session = session
        self._checkpoint = checkpoint
        self._sink = sink
        self._stop_event = stop_event
        self._input_name = input_name
        self._prior_cursor = prior_cursor
        self._queue_size = queue_size
        self._reader = EntryReader(ExportStreamParser(max_record_size), input_name)
        self._check_first_entry = True
        self._failures: list[FailureKind] = []
        self._stats = IngestionStats()

    @property
    def failures(self) -> tuple[FailureKind, ...]:
        """Failure kinds classified from diagnostics so far."""
        return tuple(self._failures)

    @property
    def stats(self) -> IngestionStats:
        self._stats.oversized_records = self._reader.oversized_records
        return self._stats

    async def run(self) -> SessionOutcome:
        """Run the session until both output streams close or a stop is requested.

        Returns:
            Outcome with the final process state and session counters.

        Raises:
            JournalTailProcessError: If the process cannot be started.
            JournalTailCheckpointError: If a checkpoint write fails.
            JournalTailSinkError: If the sink rejects an entry.
        """
        await self._session.start()
        _LOGGER.info(
            "journal_session_started",
            input_name=self._input_name,
            resume_cursor=self._prior_cursor,
        )
        entries: asyncio.Queue[JournalEntry | None] = asyncio.Queue(self._queue_size)
        diagnostics: asyncio.Queue[str | None] = asyncio.Queue(self._queue_size)
        readers = [
            asyncio.create_task(self._read_entries(entries)),
            asyncio.create_task(self._read_diagnostics(diagnostics)),
        ]
        stopped = True
        try:
            stopped = await self._dispatch(entries, diagnostics, readers)
        finally:
            await _cancel_tasks(readers)
            if stopped:
                process_state = await self._session.terminate()
            else:
                process_state = await self._session.wait()
        return SessionOutcome(
            process_state=process_state,
            return_code=self._session.return_code,
            stopped=stopped,
            failures=self.failures,
            stats=self.stats,
        )

    async def _dispatch(
        self,
        entries: asyncio.Queue[JournalEntry | None],
        diagnostics: asyncio.Queue[str | None],
        readers: list[asyncio.Task[None]],
    ) -> bool:
        """Service entries, diagnostics, and the stop event, whichever is ready first.

        Returns:
            True when a stop was requested, False when both streams closed.
        """
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        entry_getter: asyncio.Task[Any] | None = asyncio.create_task(entries.get())
        diagnostic_getter: asyncio.Task[Any] | None = asyncio.create_task(diagnostics.get())
        running_readers = set(readers)
        try:
            while entry_getter is not None or diagnostic_getter is not None:
                waiting: set[asyncio.Task[Any]] = {stop_waiter, *running_readers}
                waiting.update(
                    task for task in (entry_getter, diagnostic_getter) if task is not None
                )
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if stop_waiter in done:
                    _LOGGER.info("journal_session_stop_requested", input_name=self._input_name)
                    return True
                for reader in running_readers & done:
                    reader.result()
                running_readers -= done
                if diagnostic_getter is not None and diagnostic_getter in done:
                    line = diagnostic_getter.result()
                    diagnostic_getter = None
                    if line is not None:
                        self._handle_diagnostic(line)
                        diagnostic_getter = asyncio.create_task(diagnostics.get())
                if entry_getter is not None and entry_getter in done:
                    entry = entry_getter.result()
                    entry_getter = None
                    if entry is not None:
                        self._handle_entry(entry)
                        entry_getter = asyncio.create_task(entries.get())
            return False
        finally:
            await _cancel_tasks([stop_waiter, entry_getter, diagnostic_getter])

    def _handle_entry(self, entry: JournalEntry) -> None:
        cursor = entry.cursor
        if self._check_first_entry:
            self._check_first_entry = False
            if self._prior_cursor is not None and cursor == self._prior_cursor:
                self._stats.duplicates_skipped += 1
                _LOGGER.info(
                    "journal_duplicate_first_entry_skipped",
                    input_name=self._input_name,
                    cursor=cursor,
                )
                return
        self._sink.dispatch(entry)
        self._stats.entries_dispatched += 1
        if cursor is None:
            _LOGGER.warning("journal_entry_without_cursor", input_name=self._input_name)
            return
        self._checkpoint.write(cursor)
        _LOGGER.debug("journal_checkpoint_written", input_name=self._input_name, cursor=cursor)

    def _handle_diagnostic(self, line: str) -> None:
        self._stats.diagnostic_lines += 1
        _LOGGER.error("journal_diagnostic", input_name=self._input_name, line=line)
        failure = classify_diagnostic(line)
        if failure is None or failure in self._failures:
            return
        self._failures.append(failure)
        _LOGGER.warning(
            "journal_failure_classified",
            input_name=self._input_name,
            failure=failure,
        )

    async def _read_entries(self, entries: asyncio.Queue[JournalEntry | None]) -> None:
        try:
            async for entry in self._reader.entries(self._session.stdout):
                await entries.put(entry)
        except OSError as error:
            _LOGGER.error(
                "journal_stream_error",
                input_name=self._input_name,
                stream="stdout",
                error=str(error),
            )
        await entries.put(None)

    async def _read_diagnostics(self, diagnostics: asyncio.Queue[str | None]) -> None:
        stderr = self._session.stderr
        try:
            while True:
                try:
                    raw_line = await stderr.readline()
                except ValueError:
                    # readline already dropped the over-long line
                    _LOGGER.warning("journal_diagnostic_line_too_long", input_name=self._input_name)
                    continue
                if not raw_line:
                    break
                await diagnostics.put(raw_line.decode("utf-8", errors="replace").rstrip("\r\n"))
        except OSError as error:
            _LOGGER.error(
                "journal_stream_error",
                input_name=self._input_name,
                stream="stderr",
                error=str(error),
            )
        await diagnostics.put(None)


async def _cancel_tasks(tasks: list[asyncio.Task[Any] | None]) -> None:
    """Cancel pending tasks and wait for them to unwind."""
    pending = [task for task in tasks if task is not None and not task.done()]
    for task in pending:
        task.cancel()
    results = await asyncio.gather(*pending, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            raise result
