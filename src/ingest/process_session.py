"""journalctl process lifecycle.

This module builds the journalctl command line and owns one running
process together with its stdout and stderr streams.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from core.constants import (
    AFTER_CURSOR_FLAG,
    DEFAULT_TERMINATE_TIMEOUT_SECONDS,
    JOURNALCTL_BASE_ARGS,
    NEWEST_LINES_FLAG,
    OFFSET_METHOD_NEWEST,
    OFFSET_METHOD_OLDEST,
    OLDEST_LINES_FLAG,
)
from core.errors import JournalTailProcessError
from core.logging_config import get_logger
from core.types import OffsetMethod, ProcessState

_LOGGER = get_logger(__name__)


def build_journal_command(
    binary: str,
    cursor: str | None,
    matches: Sequence[str],
    offset_method: OffsetMethod,
) -> list[str]:
    """Build the journalctl argument vector.

    Args:
        binary: journalctl executable path or name.
        cursor: Resume cursor; entries after it are emitted.
        matches: journalctl match expressions, appended in order.
        offset_method: Start position used when no cursor is given.

    Returns:
        Full command line, executable first.
    """
    command = [binary, *JOURNALCTL_BASE_ARGS]
    if cursor:
        command.extend([AFTER_CURSOR_FLAG, cursor])
    elif offset_method == OFFSET_METHOD_NEWEST:
        command.append(NEWEST_LINES_FLAG)
    elif offset_method == OFFSET_METHOD_OLDEST:
        command.append(OLDEST_LINES_FLAG)
    command.extend(matches)
    return command


class JournalProcessSession:
    """One journalctl process and its two output streams."""

    def __init__(self, command: Sequence[str]) -> None:
        self._command = list(command)
        self._process: asyncio.subprocess.Process | None = None
        self._state: ProcessState = "not_started"

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def return_code(self) -> int | None:
        if self._process is None:
            return None
        return self._process.returncode

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self._streams()[0]

    @property
    def stderr(self) -> asyncio.StreamReader:
        return self._streams()[1]

    async def start(self) -> None:
        """Spawn the process.

        Raises:
            JournalTailProcessError: If the process cannot be started.
        """
        if self._state != "not_started":
            raise JournalTailProcessError(
                f"journalctl session already started (state={self._state}). "
                "Create a new session to restart."
            )
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as error:
            raise JournalTailProcessError(
                f"Failed to start {self._command[0]}: {error}. "
                "Install journalctl or set 'bin' to its path."
            ) from error
        self._state = "running"
        _LOGGER.info("journal_process_started", pid=self._process.pid, command=self._command)

    async def wait(self) -> ProcessState:
        """Wait for the process to exit and record the final state."""
        if self._process is None:
            return self._state
        return_code = await self._process.wait()
        self._state = "exited_cleanly" if return_code == 0 else "exited_with_error"
        return self._state

    async def terminate(self, timeout: float = DEFAULT_TERMINATE_TIMEOUT_SECONDS) -> ProcessState:
        """Stop the process, escalating to SIGKILL after ``timeout`` seconds."""
        process = self._process
        if process is None or process.returncode is not None:
            return await self.wait()
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout)
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            _LOGGER.warning("journal_process_kill", pid=process.pid, timeout_seconds=timeout)
            try:
                process.kill()
            except ProcessLookupError:
                pass
        return await self.wait()

    def _streams(self) -> tuple[asyncio.StreamReader, asyncio.StreamReader]:
        process = self._process
        if process is None or process.stdout is None or process.stderr is None:
            raise JournalTailProcessError("journalctl session has no output streams; start it first.")
        return process.stdout, process.stderr
