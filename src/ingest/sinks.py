"""Entry sinks and decoders.

A sink is the downstream boundary of the ingestion coordinator: returning
from ``dispatch`` acknowledges the entry. Decoders translate an entry into
a host-style message mapping before it reaches the sink.
"""

from __future__ import annotations

import json
import os
import socket
import time
import uuid
from typing import Any, Callable, Mapping, Protocol, TextIO

from core.constants import CURSOR_FIELD_NAME, MESSAGE_FIELD_NAME, MESSAGE_TYPE_NAME
from core.errors import JournalTailConfigError, JournalTailSinkError
from core.types import JournalEntry

EntryDecoder = Callable[[JournalEntry, str], Mapping[str, Any]]


class EntrySink(Protocol):
    """Downstream receiver of journal entries."""

    def dispatch(self, entry: JournalEntry) -> None:
        """Accept one entry or raise ``JournalTailSinkError``."""


class PayloadSink(Protocol):
    """Receiver of decoded message mappings."""

    def emit(self, payload: Mapping[str, Any]) -> None:
        """Accept one decoded payload."""


class JsonLinesSink:
    """Write each entry or payload as one JSON object per line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def dispatch(self, entry: JournalEntry) -> None:
        self.emit(entry.to_payload())

    def emit(self, payload: Mapping[str, Any]) -> None:
        try:
            self._stream.write(json.dumps(payload, sort_keys=True) + "\n")
            self._stream.flush()
        except (OSError, ValueError) as error:
            raise JournalTailSinkError(f"Failed to write journal entry: {error}.") from error


class DecodingSink:
    """Decode entries before handing them to a payload sink."""

    def __init__(self, decoder: EntryDecoder, downstream: PayloadSink, logger_name: str) -> None:
        self._decoder = decoder
        self._downstream = downstream
        self._logger_name = logger_name

    def dispatch(self, entry: JournalEntry) -> None:
        self._downstream.emit(self._decoder(entry, self._logger_name))


def decode_message(entry: JournalEntry, logger_name: str) -> Mapping[str, Any]:
    """Translate an entry into a host message mapping.

    ``MESSAGE`` becomes the payload; the cursor is dropped from fields.
    """
    fields = entry.to_payload()
    fields.pop(CURSOR_FIELD_NAME, None)
    payload = fields.pop(MESSAGE_FIELD_NAME, None)
    return {
        "uuid": str(uuid.uuid4()),
        "timestamp": time.time_ns(),
        "type": MESSAGE_TYPE_NAME,
        "pid": os.getpid(),
        "hostname": socket.gethostname(),
        "logger": logger_name,
        "payload": payload,
        "fields": fields,
    }


_DECODERS: dict[str, EntryDecoder] = {
    "message": decode_message,
}


def supported_decoders() -> tuple[str, ...]:
    """Return registered decoder names."""
    return tuple(sorted(_DECODERS))


def build_sink(decoder_name: str | None, stream: TextIO, logger_name: str) -> EntrySink:
    """Build the sink for an input, routing through a decoder when named.

    Raises:
        JournalTailConfigError: If the decoder name is not registered.
    """
    json_sink = JsonLinesSink(stream)
    if decoder_name is None:
        return json_sink
    decoder = _DECODERS.get(decoder_name)
    if decoder is None:
        raise JournalTailConfigError(
            f"Decoder not found: {decoder_name}. Use one of: {', '.join(supported_decoders())}."
        )
    return DecodingSink(decoder, json_sink, logger_name)
