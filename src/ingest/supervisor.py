"""Supervised restarts for journal inputs.

This module reruns failed journalctl sessions with exponential backoff
and jitter. Ingest errors are retried; configuration errors, including
matches journalctl rejected, end supervision immediately.
"""

from __future__ import annotations

import asyncio

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential_jitter,
)

from core.errors import JournalTailIngestError, JournalTailRetryExhaustedError
from core.logging_config import get_logger
from core.types import RetryPolicy, SessionOutcome
from ingest.journal_input import JournalInput
from ingest.sinks import EntrySink

_LOGGER = get_logger(__name__)


async def run_supervised(
    journal_input: JournalInput,
    sink: EntrySink,
    policy: RetryPolicy,
    stop_event: asyncio.Event,
) -> SessionOutcome | None:
    """Run sessions until a stop is requested or retries run out.

    Args:
        journal_input: Input whose sessions are supervised.
        sink: Receiver of dispatched entries.
        policy: Restart policy; ``max_attempts`` of 0 retries forever.
        stop_event: External stop request; also interrupts backoff sleeps.

    Returns:
        Outcome of the stopped session, or None when stopped between sessions.

    Raises:
        JournalTailConfigError: If the input configuration is unusable.
        JournalTailRetryExhaustedError: If every allowed attempt failed.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts) if policy.max_attempts > 0 else stop_never,
        wait=wait_exponential_jitter(
            initial=policy.base_delay,
            max=policy.max_delay,
            jitter=policy.jitter,
        ),
        retry=retry_if_exception_type(JournalTailIngestError),
        before_sleep=_log_restart(journal_input.name),
        sleep=_stoppable_sleep(stop_event),
        reraise=False,
    )
    outcome: SessionOutcome | None = None
    try:
        async for attempt in retrying:
            with attempt:
                if stop_event.is_set():
                    return outcome
                outcome = await journal_input.run_session(sink, stop_event)
    except RetryError as error:
        last_attempt = error.last_attempt
        last_error = last_attempt.exception()
        if last_error is None:
            raise
        raise JournalTailRetryExhaustedError(last_attempt.attempt_number, last_error) from last_error
    return outcome


def _log_restart(input_name: str):
    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        _LOGGER.warning(
            "journal_session_restarting",
            input_name=input_name,
            attempt=retry_state.attempt_number,
            delay_seconds=round(delay, 3),
            error=str(error),
        )

    return _before_sleep


def _stoppable_sleep(stop_event: asyncio.Event):
    async def _sleep(seconds: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    return _sleep
