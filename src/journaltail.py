"""Public SDK surface for journaltail.

This module provides a stable import path for library users.
It re-exports the typed option models and the session building blocks.
"""

from __future__ import annotations

import asyncio

from core.config import JournalTailConfig
from core.errors import (
    JournalTailConfigError,
    JournalTailError,
    JournalTailIngestError,
    JournalTailRetryExhaustedError,
)
from core.input_config import load_input_config
from core.types import (
    JournalEntry,
    JournalField,
    JournalInputOptions,
    RetryPolicy,
    SessionOutcome,
)
from ingest.checkpoint_store import CursorCheckpointStore
from ingest.export_parser import ExportStreamParser, ParseResult
from ingest.journal_input import JournalInput
from ingest.sinks import EntrySink, JsonLinesSink, build_sink
from ingest.supervisor import run_supervised


async def tail_journal(
    options: JournalInputOptions,
    sink: EntrySink,
    stop_event: asyncio.Event,
    config: JournalTailConfig | None = None,
) -> SessionOutcome | None:
    """Tail one journal input under supervision until stopped.

    Args:
        options: Input options, including the restart policy.
        sink: Receiver of dispatched entries.
        stop_event: Set it to stop the running session.
        config: Optional runtime config; read from the environment when omitted.

    Returns:
        Outcome of the stopped session, or None when stopped between sessions.
    """
    journal_input = JournalInput(options, config or JournalTailConfig.from_env())
    try:
        return await run_supervised(journal_input, sink, options.retry, stop_event)
    finally:
        journal_input.close()


__all__ = [
    "CursorCheckpointStore",
    "EntrySink",
    "ExportStreamParser",
    "JournalEntry",
    "JournalField",
    "JournalInput",
    "JournalInputOptions",
    "JournalTailConfig",
    "JournalTailConfigError",
    "JournalTailError",
    "JournalTailIngestError",
    "JournalTailRetryExhaustedError",
    "JsonLinesSink",
    "ParseResult",
    "RetryPolicy",
    "SessionOutcome",
    "build_sink",
    "load_input_config",
    "run_supervised",
    "tail_journal",
]
