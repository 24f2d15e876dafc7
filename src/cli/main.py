"""journaltail CLI entry points.
This module exposes commands for tailing the journal, inspecting
checkpoints, and parsing export-format files offline.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence, TextIO

from core.config import JournalTailConfig
from core.constants import (
    DEFAULT_JOURNALCTL_BIN,
    EXIT_CODE_CONFIG,
    EXIT_CODE_OK,
    EXIT_CODE_RECOVERABLE,
    SUPPORTED_OFFSET_METHODS,
)
from core.errors import JournalTailConfigError, JournalTailError
from core.input_config import load_input_config
from core.types import JournalInputOptions
from ingest.checkpoint_store import CursorCheckpointStore, checkpoint_path_for
from ingest.entry_stream import EntryReader, FileByteSource
from ingest.export_parser import ExportStreamParser
from ingest.journal_input import JournalInput
from ingest.sinks import JsonLinesSink, build_sink, supported_decoders
from ingest.supervisor import run_supervised


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="journaltail", description="Tail the systemd journal")
    parser.add_argument("--data-root", help="Override JOURNALTAIL_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_run_command(subparsers)
    _add_cursor_command(subparsers)
    _add_parse_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the journaltail CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code: 0 on success, 1 for failures a restart may fix,
        2 for configuration errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args.data_root)
        if args.command == "run":
            return _run_tail_command(config, args)
        if args.command == "cursor":
            return _run_cursor_command(config, args)
        if args.command == "parse":
            return _run_parse_command(config, args)
    except JournalTailConfigError as error:
        print(f"configuration error: {error}", file=sys.stderr)
        return EXIT_CODE_CONFIG
    except JournalTailError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_CODE_RECOVERABLE
    parser.error(f"Unsupported command: {args.command}")
    return EXIT_CODE_CONFIG


def _build_config(data_root: str | None) -> JournalTailConfig:
    """Build runtime config with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Validated runtime config.
    """
    config = JournalTailConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return config


def _run_tail_command(config: JournalTailConfig, args: argparse.Namespace) -> int:
    """Handle run command.

    Args:
        config: Runtime config.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    options = _build_input_options(args)
    if args.output:
        with open(args.output, "a", encoding="utf-8") as output_stream:
            return asyncio.run(_tail_journal(options, config, output_stream))
    return asyncio.run(_tail_journal(options, config, sys.stdout))


async def _tail_journal(
    options: JournalInputOptions,
    config: JournalTailConfig,
    output_stream: TextIO,
) -> int:
    """Tail the journal until stopped by a signal or a final failure."""
    sink = build_sink(options.decoder, output_stream, options.name)
    journal_input = JournalInput(options, config)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signal_number in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signal_number, stop_event.set)
    try:
        await run_supervised(journal_input, sink, options.retry, stop_event)
    finally:
        for signal_number in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signal_number)
        journal_input.close()
    return EXIT_CODE_OK


def _run_cursor_command(config: JournalTailConfig, args: argparse.Namespace) -> int:
    """Handle cursor command.

    Args:
        config: Runtime config.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    checkpoint = CursorCheckpointStore(checkpoint_path_for(config.data_root, args.name))
    if args.reset:
        checkpoint.clear()
        return EXIT_CODE_OK
    cursor = checkpoint.read()
    print(cursor or "-")
    return EXIT_CODE_OK


def _run_parse_command(config: JournalTailConfig, args: argparse.Namespace) -> int:
    """Handle parse command.

    Args:
        config: Runtime config.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    max_record_size = args.max_record_size or config.max_record_size
    source_path = Path(args.source).expanduser()
    try:
        with source_path.open("rb") as source_file:
            return asyncio.run(
                _print_export_entries(FileByteSource(source_file), max_record_size, sys.stdout)
            )
    except OSError as error:
        raise JournalTailConfigError(
            f"Failed to read export file at {source_path}: {error}. Provide a readable file."
        ) from error


async def _print_export_entries(
    source: FileByteSource,
    max_record_size: int,
    output_stream: TextIO,
) -> int:
    """Parse an export stream and write entries as JSON lines."""
    reader = EntryReader(ExportStreamParser(max_record_size), input_name="parse")
    sink = JsonLinesSink(output_stream)
    async for entry in reader.entries(source):
        sink.dispatch(entry)
    return EXIT_CODE_OK


def _build_input_options(args: argparse.Namespace) -> JournalInputOptions:
    """Merge the optional YAML config with command-line overrides."""
    if args.config:
        options = load_input_config(args.config)
    elif args.name:
        options = JournalInputOptions(name=args.name)
    else:
        raise JournalTailConfigError("Provide --name or --config to identify the journal input.")
    overrides: dict[str, Any] = {}
    if args.name:
        overrides["name"] = args.name
    if args.bin:
        overrides["binary"] = args.bin
    if args.match:
        overrides["matches"] = tuple(args.match)
    if args.decoder:
        overrides["decoder"] = args.decoder
    if args.offset_method:
        overrides["offset_method"] = args.offset_method
    return replace(options, **overrides)


def _add_run_command(subparsers: Any) -> None:
    """Register run subcommand."""
    parser = subparsers.add_parser("run", help="Tail the journal and print entries as JSON lines")
    parser.add_argument("--name", help="Input name; also names the checkpoint file")
    parser.add_argument("--config", help="YAML input configuration file")
    parser.add_argument("--bin", help=f"journalctl executable (default: {DEFAULT_JOURNALCTL_BIN})")
    parser.add_argument(
        "--match",
        action="append",
        help="journalctl match, e.g. _SYSTEMD_UNIT=sshd.service; repeatable",
    )
    parser.add_argument("--decoder", choices=supported_decoders(), help="Decoder applied to entries")
    parser.add_argument(
        "--offset-method",
        choices=SUPPORTED_OFFSET_METHODS,
        help="Start position when no checkpoint cursor is used",
    )
    parser.add_argument("--output", help="Append entries to this file instead of stdout")


def _add_cursor_command(subparsers: Any) -> None:
    """Register cursor subcommand."""
    parser = subparsers.add_parser("cursor", help="Show or reset the stored journal cursor")
    parser.add_argument("--name", required=True, help="Input name")
    parser.add_argument("--reset", action="store_true", help="Delete the stored cursor")


def _add_parse_command(subparsers: Any) -> None:
    """Register parse subcommand."""
    parser = subparsers.add_parser("parse", help="Parse a journal export file into JSON lines")
    parser.add_argument("source", help="File produced by 'journalctl -o export'")
    parser.add_argument("--max-record-size", type=int, help="Override JOURNALTAIL_MAX_RECORD_SIZE")
