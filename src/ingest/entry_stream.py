"""Entry assembly on top of the export-format parser.

This module groups parsed fields into journal entries and handles the
parser's non-fatal signals: oversized records drop the entry they belong
to, and trailing bytes at end of stream are discarded with a warning.
"""

from __future__ import annotations

from typing import AsyncIterator, BinaryIO

from core.logging_config import get_logger
from core.types import JournalEntry, JournalField
from ingest.export_parser import ByteSource, ExportStreamParser

_LOGGER = get_logger(__name__)
_TRUNCATED_PREVIEW_BYTES = 64


class EntryAssembler:
    """Accumulate fields until an end-of-entry marker arrives."""

    def __init__(self) -> None:
        self._fields: list[JournalField] = []
        self._skipping = False

    @property
    def pending(self) -> int:
        return len(self._fields)

    def add(self, journal_field: JournalField) -> None:
        if not self._skipping:
            self._fields.append(journal_field)

    def finish(self) -> JournalEntry | None:
        """Close the current entry; empty and skipped entries yield None."""
        fields = tuple(self._fields)
        self._fields.clear()
        if self._skipping:
            self._skipping = False
            return None
        if not fields:
            return None
        return JournalEntry(fields=fields)

    def discard(self) -> int:
        """Drop the current entry, including fields still to come.

        Returns:
            Number of fields already accumulated and dropped.
        """
        dropped = len(self._fields)
        self._fields.clear()
        self._skipping = True
        return dropped


class EntryReader:
    """Read complete journal entries from an export-format byte source."""

    def __init__(self, parser: ExportStreamParser, input_name: str) -> None:
        self._parser = parser
        self._input_name = input_name
        self._assembler = EntryAssembler()
        self.oversized_records = 0

    async def entries(self, source: ByteSource) -> AsyncIterator[JournalEntry]:
        """Yield entries in source order until the source is exhausted.

        Raises:
            OSError: If reading from the source fails.
        """
        while True:
            result = await self._parser.parse(source)
            if result.status == "field":
                self._assembler.add(result.to_field())
            elif result.final:
                entry = self._assembler.finish()
                if entry is not None:
                    yield entry
            elif result.status == "buffer_exceeded":
                self._record_oversized()
            elif result.status == "end_of_stream":
                self._log_trailing_data()
                return

    def _record_oversized(self) -> None:
        self.oversized_records += 1
        truncated = self._parser.take_truncated()
        dropped_fields = self._assembler.discard()
        _LOGGER.error(
            "journal_record_oversized",
            input_name=self._input_name,
            max_record_size=self._parser.max_record_size,
            truncated_bytes=len(truncated),
            dropped_fields=dropped_fields,
            preview=truncated[:_TRUNCATED_PREVIEW_BYTES].decode("utf-8", errors="replace"),
        )

    def _log_trailing_data(self) -> None:
        remaining = self._parser.remaining_data()
        pending_fields = self._assembler.pending
        if remaining or pending_fields:
            _LOGGER.warning(
                "journal_partial_entry_discarded",
                input_name=self._input_name,
                trailing_bytes=len(remaining),
                pending_fields=pending_fields,
            )


class FileByteSource:
    """Adapt a binary file object to the asynchronous byte source protocol."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    async def read(self, n: int = -1) -> bytes:
        return self._stream.read(n)
