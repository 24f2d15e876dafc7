"""Integration tests for resuming a journal input across runs."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from core.config import JournalTailConfig
from core.types import JournalEntry, JournalInputOptions, RetryPolicy
from journaltail import tail_journal
from tests.journal_fixtures import write_fake_journalctl


class _ListSink:
    def __init__(self, stop_event: asyncio.Event, stop_after: int) -> None:
        self.cursors: list[str | None] = []
        self._stop_event = stop_event
        self._stop_after = stop_after

    def dispatch(self, entry: JournalEntry) -> None:
        self.cursors.append(entry.cursor)
        if len(self.cursors) == self._stop_after:
            self._stop_event.set()


def _tail_until(options: JournalInputOptions, config: JournalTailConfig, stop_after: int):
    async def _run():
        stop_event = asyncio.Event()
        sink = _ListSink(stop_event, stop_after)
        outcome = await tail_journal(options, sink, stop_event, config)
        return outcome, sink

    return asyncio.run(_run())


def test_second_run_resumes_after_checkpoint_without_duplicates(tmp_path) -> None:
    """A restarted input should continue after the last dispatched entry."""
    config = replace(JournalTailConfig.from_env(), data_root=tmp_path / "data")
    fake = write_fake_journalctl(tmp_path / "bin", cursors=["s=1", "s=2"], hold=True)
    options = JournalInputOptions(
        name="resume",
        binary=fake.binary,
        retry=RetryPolicy(max_attempts=1),
    )
    _, first_sink = _tail_until(options, config, stop_after=2)

    fake.configure(cursors=["s=1", "s=2", "s=3", "s=4"], hold=True)
    outcome, second_sink = _tail_until(options, config, stop_after=2)

    assert first_sink.cursors == ["s=1", "s=2"]
    assert second_sink.cursors == ["s=3", "s=4"]
    assert fake.invocations()[1][-2:] == ["--after-cursor", "s=2"]
    assert outcome is not None and outcome.stopped
    assert outcome.stats.duplicates_skipped == 1


def test_stop_event_ends_following_session(tmp_path) -> None:
    """Setting the stop event should end a session that keeps following."""
    config = replace(JournalTailConfig.from_env(), data_root=tmp_path / "data")
    fake = write_fake_journalctl(tmp_path / "bin", cursors=["s=1", "s=2", "s=3"], hold=True)
    options = JournalInputOptions(name="follow", binary=fake.binary)

    class _StopAfterThree:
        def __init__(self, stop_event: asyncio.Event) -> None:
            self._stop_event = stop_event
            self.count = 0

        def dispatch(self, entry: JournalEntry) -> None:
            self.count += 1
            if self.count == 3:
                self._stop_event.set()

    async def _run():
        stop_event = asyncio.Event()
        sink = _StopAfterThree(stop_event)
        outcome = await tail_journal(options, sink, stop_event, config)
        return outcome, sink

    outcome, sink = asyncio.run(_run())

    assert outcome is not None and outcome.stopped
    assert sink.count == 3
