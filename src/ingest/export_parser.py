"""Incremental parser for the journal export format.

This module turns an unbounded byte stream, delivered in chunks of any
size, into journal fields one at a time. Textual fields are encoded as
``KEY=VALUE\\n``; binary fields as ``KEY\\n`` followed by a little-endian
uint64 length, the raw value, and a newline. A blank line ends an entry.
See https://systemd.io/JOURNAL_EXPORT_FORMATS/ for the format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from core.constants import (
    BINARY_LENGTH_SIZE,
    BUFFER_LOW_WATER_MARK,
    DEFAULT_MAX_RECORD_SIZE,
    INITIAL_BUFFER_SIZE,
    MAX_SKIPPABLE_RECORD_FACTOR,
)
from core.errors import JournalTailConfigError
from core.types import JournalField

ParseStatus = Literal["field", "end_of_entry", "need_data", "buffer_exceeded", "end_of_stream"]

_NEWLINE = 0x0A
_EQUALS = 0x3D


class ByteSource(Protocol):
    """Asynchronous byte producer, e.g. ``asyncio.StreamReader``."""

    async def read(self, n: int = -1) -> bytes:
        """Return up to ``n`` bytes, or ``b""`` at end of stream."""


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one parse call.

    Attributes:
        status: What the call produced.
        bytes_read: Bytes consumed from the buffer, or read from the source
            when the call ended in a read status.
        key: Field key for ``field`` results.
        value: Field value for ``field`` results.
    """

    status: ParseStatus
    bytes_read: int = 0
    key: str | None = None
    value: bytes | None = None

    @property
    def final(self) -> bool:
        """Return whether this result closes the current entry."""
        return self.status == "end_of_entry"

    def to_field(self) -> JournalField:
        """Return the parsed field of a ``field`` result."""
        if self.key is None or self.value is None:
            raise ValueError(f"Parse result with status '{self.status}' carries no field.")
        return JournalField(key=self.key, value=self.value)


class RawBuffer:
    """Growable byte arena with scan and read cursors.

    Bytes in ``[scan_pos, read_pos)`` are buffered but not yet consumed.
    Invariant: ``0 <= scan_pos <= read_pos <= capacity <= max_size``.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_RECORD_SIZE) -> None:
        if max_size < 1:
            raise JournalTailConfigError(
                f"Invalid parser buffer size {max_size}: expected a positive byte count."
            )
        self.max_size = max_size
        self.data = bytearray(min(INITIAL_BUFFER_SIZE, max_size))
        self.scan_pos = 0
        self.read_pos = 0

    @property
    def capacity(self) -> int:
        return len(self.data)

    @property
    def unconsumed(self) -> int:
        return self.read_pos - self.scan_pos

    def ensure_capacity(self, size: int) -> None:
        """Grow the arena to at least ``size`` bytes, bounded by ``max_size``."""
        target = min(size, self.max_size)
        if self.capacity >= target:
            return
        grown = bytearray(target)
        grown[: self.read_pos] = self.data[: self.read_pos]
        self.data = grown

    def reserve(self) -> bool:
        """Make room for the next read.

        Returns:
            False when the arena is at its maximum size, full, and holds
            one unfinished record; the caller must treat it as oversized.
        """
        if self.capacity - self.read_pos > BUFFER_LOW_WATER_MARK:
            return True
        if self.scan_pos > 0:
            self.compact()
            return True
        if self.capacity < self.max_size:
            self.ensure_capacity(self.capacity * 2)
            return True
        return self.read_pos < self.capacity

    def compact(self) -> None:
        """Shift unconsumed bytes to offset zero."""
        pending = self.unconsumed
        self.data[:pending] = self.data[self.scan_pos : self.read_pos]
        self.scan_pos = 0
        self.read_pos = pending

    def append(self, chunk: bytes) -> None:
        end = self.read_pos + len(chunk)
        self.data[self.read_pos : end] = chunk
        self.read_pos = end

    def consume(self, count: int) -> None:
        self.scan_pos += count
        if self.scan_pos == self.read_pos:
            self.reset()

    def pending_bytes(self) -> bytes:
        return bytes(self.data[self.scan_pos : self.read_pos])

    def reset(self) -> None:
        self.scan_pos = 0
        self.read_pos = 0


class ExportStreamParser:
    """Stateful parser yielding one export-format field per call.

    The parser reads from its source only when the buffer holds no
    complete record, and at most once per call. Oversized records are
    reported without raising; the parser skips their remaining bytes and
    keeps going.
    """

    def __init__(self, max_record_size: int = DEFAULT_MAX_RECORD_SIZE) -> None:
        self._buffer = RawBuffer(max_record_size)
        self._need_data = True
        self._skip_bytes = 0
        self._skip_line = False
        self._truncated: bytes | None = None

    @property
    def max_record_size(self) -> int:
        return self._buffer.max_size

    def set_minimum_buffer_size(self, size: int) -> None:
        """Pre-size the internal buffer, bounded by the maximum record size."""
        self._buffer.ensure_capacity(size)

    async def parse(self, source: ByteSource) -> ParseResult:
        """Parse the next field, reading once from ``source`` if needed.

        Args:
            source: Asynchronous byte producer.

        Returns:
            One parse result. ``need_data`` means call again; the next call
            reads more bytes before scanning.

        Raises:
            OSError: If the underlying read fails.
        """
        bytes_read = 0
        if self._need_data or self._buffer.unconsumed == 0:
            if not self._buffer.reserve():
                return self._report_exceeded(skip_line=True)
            chunk = await source.read(self._buffer.capacity - self._buffer.read_pos)
            if not chunk:
                return ParseResult(status="end_of_stream")
            self._buffer.append(chunk)
            bytes_read = len(chunk)
            self._need_data = False
        if not self._discard_skipped():
            self._need_data = True
            return ParseResult(status="need_data", bytes_read=bytes_read)
        result = self._scan_record()
        if result.status == "need_data":
            self._need_data = True
            return ParseResult(status="need_data", bytes_read=bytes_read)
        return result

    def take_truncated(self) -> bytes:
        """Return the buffered bytes of the last oversized record, once."""
        truncated = self._truncated or b""
        self._truncated = None
        return truncated

    def remaining_data(self) -> bytes:
        """Return unconsumed bytes at end of stream, once, and reset cursors."""
        remaining = self._buffer.pending_bytes()
        self._buffer.reset()
        self._need_data = True
        return remaining

    def _scan_record(self) -> ParseResult:
        buffer = self._buffer
        data = buffer.data
        start = buffer.scan_pos
        line_end = data.find(_NEWLINE, start, buffer.read_pos)
        if line_end == -1:
            return ParseResult(status="need_data")
        if line_end == start:
            buffer.consume(1)
            return ParseResult(status="end_of_entry", bytes_read=1)
        separator = data.find(_EQUALS, start, line_end)
        if separator != -1:
            key = data[start:separator].decode("utf-8", errors="replace")
            value = bytes(data[separator + 1 : line_end])
            consumed = line_end + 1 - start
            buffer.consume(consumed)
            return ParseResult(status="field", bytes_read=consumed, key=key, value=value)
        return self._scan_binary_field(start, line_end)

    def _scan_binary_field(self, start: int, line_end: int) -> ParseResult:
        buffer = self._buffer
        length_start = line_end + 1
        payload_start = length_start + BINARY_LENGTH_SIZE
        if payload_start > buffer.read_pos:
            return ParseResult(status="need_data")
        length = int.from_bytes(buffer.data[length_start:payload_start], "little", signed=False)
        record_end = payload_start + length + 1
        if record_end - start > buffer.max_size:
            if length > buffer.max_size * MAX_SKIPPABLE_RECORD_FACTOR:
                return self._report_untrusted_length(start, payload_start)
            return self._report_exceeded(skip_bytes=record_end - start)
        if record_end > buffer.read_pos:
            return ParseResult(status="need_data")
        key = buffer.data[start:line_end].decode("utf-8", errors="replace")
        value = bytes(buffer.data[payload_start : payload_start + length])
        consumed = record_end - start
        buffer.consume(consumed)
        return ParseResult(status="field", bytes_read=consumed, key=key, value=value)

    def _report_exceeded(self, skip_line: bool = False, skip_bytes: int = 0) -> ParseResult:
        """Drop the buffered record and arrange to skip the rest of it."""
        buffer = self._buffer
        self._truncated = buffer.pending_bytes()
        buffered = buffer.unconsumed
        buffer.reset()
        self._need_data = True
        self._skip_line = skip_line
        self._skip_bytes = max(0, skip_bytes - buffered)
        return ParseResult(status="buffer_exceeded", bytes_read=buffered)

    def _report_untrusted_length(self, start: int, payload_start: int) -> ParseResult:
        """Drop a binary field header whose length is too large to skip by count.

        Only the key line and length are consumed; the payload is discarded
        through the next newline so buffered records after it survive.
        """
        buffer = self._buffer
        header_size = payload_start - start
        self._truncated = bytes(buffer.data[start:payload_start])
        buffer.consume(header_size)
        self._skip_line = True
        return ParseResult(status="buffer_exceeded", bytes_read=header_size)

    def _discard_skipped(self) -> bool:
        """Consume bytes left over from an oversized record.

        Returns:
            True when nothing remains to skip and scanning may proceed.
        """
        buffer = self._buffer
        if self._skip_bytes:
            discarded = min(self._skip_bytes, buffer.unconsumed)
            self._skip_bytes -= discarded
            buffer.consume(discarded)
            if self._skip_bytes:
                return False
        if self._skip_line:
            line_end = buffer.data.find(_NEWLINE, buffer.scan_pos, buffer.read_pos)
            if line_end == -1:
                buffer.reset()
                return False
            self._skip_line = False
            buffer.consume(line_end + 1 - buffer.scan_pos)
        return True
