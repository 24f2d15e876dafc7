"""Unit tests for the ingestion coordinator."""

from __future__ import annotations

import asyncio

import pytest

from core.errors import JournalTailSinkError
from core.types import JournalEntry, ProcessState, SessionOutcome
from ingest.checkpoint_store import CursorCheckpointStore, checkpoint_path_for
from ingest.coordinator import IngestionCoordinator
from tests.journal_fixtures import cursor_entries, export_record


class _FakeSession:
    """In-memory process session fed from byte strings."""

    def __init__(
        self,
        stdout_data: bytes,
        stderr_data: bytes = b"",
        return_code: int = 0,
        hold: bool = False,
    ) -> None:
        self._stdout_data = stdout_data
        self._stderr_data = stderr_data
        self._return_code = return_code
        self._hold = hold
        self.stdout: asyncio.StreamReader | None = None
        self.stderr: asyncio.StreamReader | None = None
        self.return_code: int | None = None
        self.terminated = False

    async def start(self) -> None:
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stdout.feed_data(self._stdout_data)
        self.stderr.feed_data(self._stderr_data)
        if not self._hold:
            self.stdout.feed_eof()
            self.stderr.feed_eof()

    async def wait(self) -> ProcessState:
        self.return_code = self._return_code
        return "exited_cleanly" if self._return_code == 0 else "exited_with_error"

    async def terminate(self) -> ProcessState:
        self.terminated = True
        self.return_code = -15
        return "exited_with_error"


class _RecordingSink:
    """Sink that records entries and the checkpoint seen at dispatch time."""

    def __init__(self, checkpoint: CursorCheckpointStore) -> None:
        self._checkpoint = checkpoint
        self.entries: list[JournalEntry] = []
        self.checkpoints_at_dispatch: list[str | None] = []

    def dispatch(self, entry: JournalEntry) -> None:
        self.checkpoints_at_dispatch.append(self._checkpoint.read())
        self.entries.append(entry)


def _run(
    tmp_path,
    session: _FakeSession,
    prior_cursor: str | None = None,
    sink=None,
    stop_event: asyncio.Event | None = None,
) -> tuple[SessionOutcome, _RecordingSink, CursorCheckpointStore]:
    checkpoint = CursorCheckpointStore(checkpoint_path_for(tmp_path, "demo"))
    recording_sink = sink or _RecordingSink(checkpoint)

    async def _drive() -> SessionOutcome:
        coordinator = IngestionCoordinator(
            session,
            checkpoint,
            recording_sink,
            stop_event or asyncio.Event(),
            input_name="demo",
            prior_cursor=prior_cursor,
            max_record_size=65536,
            queue_size=2,
        )
        return await coordinator.run()

    outcome = asyncio.run(_drive())
    checkpoint.close()
    return outcome, recording_sink, checkpoint


def test_entries_dispatch_in_order_and_checkpoint_last_cursor(tmp_path) -> None:
    """Every entry should be dispatched in order and the last cursor persisted."""
    session = _FakeSession(cursor_entries(["s=1", "s=2", "s=3", "s=4", "s=5"]))

    outcome, sink, checkpoint = _run(tmp_path, session)

    assert [entry.cursor for entry in sink.entries] == ["s=1", "s=2", "s=3", "s=4", "s=5"]
    assert checkpoint.read() == "s=5"
    assert (outcome.process_state, outcome.stopped) == ("exited_cleanly", False)
    assert outcome.stats.entries_dispatched == 5


def test_checkpoint_is_written_before_next_entry_is_dispatched(tmp_path) -> None:
    """Each dispatch should observe the cursor of the previous entry on disk."""
    session = _FakeSession(cursor_entries(["s=1", "s=2", "s=3"]))

    _, sink, _ = _run(tmp_path, session)

    assert sink.checkpoints_at_dispatch == [None, "s=1", "s=2"]


def test_first_entry_matching_prior_cursor_is_skipped(tmp_path) -> None:
    """The replayed resume entry should not be dispatched twice."""
    session = _FakeSession(cursor_entries(["s=1", "s=2"]))

    outcome, sink, _ = _run(tmp_path, session, prior_cursor="s=1")

    assert [entry.cursor for entry in sink.entries] == ["s=2"]
    assert outcome.stats.duplicates_skipped == 1


def test_only_first_entry_is_compared_with_prior_cursor(tmp_path) -> None:
    """Later entries carrying the prior cursor should still be dispatched."""
    session = _FakeSession(cursor_entries(["s=2", "s=1"]))

    _, sink, _ = _run(tmp_path, session, prior_cursor="s=1")

    assert [entry.cursor for entry in sink.entries] == ["s=2", "s=1"]


def test_entry_without_cursor_is_dispatched_but_not_checkpointed(tmp_path) -> None:
    """Entries lacking a cursor should still reach the sink."""
    session = _FakeSession(export_record([("MESSAGE", "no cursor")]))

    _, sink, checkpoint = _run(tmp_path, session)

    assert len(sink.entries) == 1 and checkpoint.read() is None


def test_seek_failure_diagnostic_is_classified(tmp_path) -> None:
    """A seek failure on stderr should be recorded as an invalid cursor."""
    session = _FakeSession(
        b"",
        stderr_data=b"Failed to seek to cursor: Invalid argument\nother noise\n",
        return_code=1,
    )

    outcome, _, _ = _run(tmp_path, session, prior_cursor="s=bad")

    assert outcome.failures == ("invalid_cursor",)
    assert outcome.stats.diagnostic_lines == 2
    assert outcome.process_state == "exited_with_error"


def test_match_failure_diagnostic_is_classified(tmp_path) -> None:
    """A rejected match on stderr should be recorded as invalid matches."""
    session = _FakeSession(b"", stderr_data=b"Failed to add match 'x': Invalid argument\n")

    outcome, _, _ = _run(tmp_path, session)

    assert outcome.failures == ("invalid_matches",)


def test_over_long_diagnostic_line_does_not_stop_classification(tmp_path) -> None:
    """Diagnostics after a stderr line beyond the reader limit should still be classified."""
    stderr_data = b"x" * 70000 + b"\n" + b"Failed to add match 'x': Invalid argument\n"
    session = _FakeSession(b"", stderr_data=stderr_data)

    outcome, _, _ = _run(tmp_path, session)

    assert outcome.failures == ("invalid_matches",)


def test_stop_event_terminates_running_session(tmp_path) -> None:
    """Setting the stop event should end the session and terminate the process."""
    session = _FakeSession(cursor_entries(["s=1", "s=2"]), hold=True)
    checkpoint = CursorCheckpointStore(checkpoint_path_for(tmp_path, "demo"))

    class _StoppingSink:
        def __init__(self) -> None:
            self.stop_event = asyncio.Event()
            self.cursors: list[str | None] = []

        def dispatch(self, entry: JournalEntry) -> None:
            self.cursors.append(entry.cursor)
            self.stop_event.set()

    async def _drive() -> tuple[SessionOutcome, _StoppingSink]:
        sink = _StoppingSink()
        coordinator = IngestionCoordinator(
            session,
            checkpoint,
            sink,
            sink.stop_event,
            input_name="demo",
            max_record_size=65536,
        )
        return await coordinator.run(), sink

    outcome, sink = asyncio.run(_drive())
    checkpoint.close()

    assert outcome.stopped and session.terminated
    assert sink.cursors[0] == "s=1"
    assert checkpoint.read() == sink.cursors[-1]


def test_sink_failure_propagates_and_terminates_session(tmp_path) -> None:
    """A sink error should end the session with the process terminated."""
    session = _FakeSession(cursor_entries(["s=1"]), hold=True)

    class _FailingSink:
        def dispatch(self, entry: JournalEntry) -> None:
            raise JournalTailSinkError("downstream unavailable")

    with pytest.raises(JournalTailSinkError):
        _run(tmp_path, session, sink=_FailingSink())
    assert session.terminated


def test_failed_dispatch_does_not_advance_checkpoint(tmp_path) -> None:
    """The checkpoint should only hold cursors of acknowledged entries."""
    session = _FakeSession(cursor_entries(["s=1", "s=2"]))
    checkpoint = CursorCheckpointStore(checkpoint_path_for(tmp_path, "demo"))

    class _FailOnSecondSink:
        def dispatch(self, entry: JournalEntry) -> None:
            if entry.cursor == "s=2":
                raise JournalTailSinkError("rejected")

    with pytest.raises(JournalTailSinkError):
        _run(tmp_path, session, sink=_FailOnSecondSink())

    assert checkpoint.read() == "s=1"
