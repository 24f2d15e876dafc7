"""Shared typed models.

This module defines the data models passed between the parser,
the ingestion coordinator, sinks, and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from core.constants import (
    CURSOR_FIELD_NAME,
    DEFAULT_JOURNALCTL_BIN,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    OFFSET_METHOD_MANUAL,
)

ProcessState = Literal["not_started", "running", "exited_cleanly", "exited_with_error"]
FailureKind = Literal["invalid_cursor", "invalid_matches"]
OffsetMethod = Literal["manual", "oldest", "newest"]


@dataclass(frozen=True)
class JournalField:
    """One key/value unit of a journal entry.

    Attributes:
        key: Field name, e.g. ``MESSAGE`` or ``__CURSOR``.
        value: Raw field bytes; binary-encoded fields may hold any bytes.
    """

    key: str
    value: bytes

    def text(self) -> str:
        """Decode the value as UTF-8, replacing invalid sequences."""
        return self.value.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class JournalEntry:
    """One complete journal record in source field order.

    Attributes:
        fields: Ordered fields; keys may repeat.
    """

    fields: tuple[JournalField, ...]

    @property
    def cursor(self) -> str | None:
        """Return the entry cursor when the source supplied one."""
        return self.text(CURSOR_FIELD_NAME)

    def get(self, key: str) -> bytes | None:
        """Return the first raw value stored under ``key``."""
        for journal_field in self.fields:
            if journal_field.key == key:
                return journal_field.value
        return None

    def text(self, key: str) -> str | None:
        """Return the first value stored under ``key`` decoded as text."""
        value = self.get(key)
        if value is None:
            return None
        return value.decode("utf-8", errors="replace")

    def to_payload(self) -> dict[str, str | list[str]]:
        """Build a JSON-ready mapping; repeated keys collect into lists."""
        payload: dict[str, str | list[str]] = {}
        for journal_field in self.fields:
            value = journal_field.text()
            existing = payload.get(journal_field.key)
            if existing is None:
                payload[journal_field.key] = value
            elif isinstance(existing, list):
                existing.append(value)
            else:
                payload[journal_field.key] = [existing, value]
        return payload


@dataclass(frozen=True)
class RetryPolicy:
    """Restart policy for supervised journal inputs.

    Attributes:
        max_attempts: Total session attempts, including the first one.
        base_delay: Initial backoff delay in seconds.
        max_delay: Upper bound for one backoff delay in seconds.
        jitter: Maximum random jitter added to each delay in seconds.
    """

    max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    jitter: float = DEFAULT_RETRY_JITTER


@dataclass(frozen=True)
class JournalInputOptions:
    """Options for one named journal input.

    Attributes:
        name: Input name; also names the checkpoint file.
        binary: journalctl executable path or name.
        matches: Ordered journalctl match expressions.
        decoder: Optional decoder name applied before the sink.
        offset_method: Where to start when no checkpoint cursor is used.
        retry: Restart policy for the supervisor.
    """

    name: str
    binary: str = DEFAULT_JOURNALCTL_BIN
    matches: tuple[str, ...] = ()
    decoder: str | None = None
    offset_method: OffsetMethod = OFFSET_METHOD_MANUAL
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass
class IngestionStats:
    """Per-session ingestion counters."""

    entries_dispatched: int = 0
    duplicates_skipped: int = 0
    oversized_records: int = 0
    diagnostic_lines: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return counters as a plain mapping for structured logs."""
        return {
            "entries_dispatched": self.entries_dispatched,
            "duplicates_skipped": self.duplicates_skipped,
            "oversized_records": self.oversized_records,
            "diagnostic_lines": self.diagnostic_lines,
        }


@dataclass(frozen=True)
class SessionOutcome:
    """Result of one journalctl session.

    Attributes:
        process_state: Final process state.
        return_code: Process return code when it exited.
        stopped: Whether the session ended on an external stop request.
        failures: Failure kinds classified from diagnostic lines.
        stats: Counters collected during the session.
    """

    process_state: ProcessState
    return_code: int | None
    stopped: bool
    failures: tuple[FailureKind, ...]
    stats: IngestionStats
