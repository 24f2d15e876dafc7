"""journalctl stderr classification."""

from __future__ import annotations

from core.constants import MATCH_FAILURE_PREFIX, SEEK_FAILURE_PREFIX
from core.types import FailureKind


def classify_diagnostic(line: str) -> FailureKind | None:
    """Map one journalctl stderr line to a known failure kind.

    Args:
        line: Diagnostic line without its trailing newline.

    Returns:
        ``invalid_cursor`` when the resume cursor was rejected,
        ``invalid_matches`` when a match expression was rejected,
        otherwise None.
    """
    if line.startswith(SEEK_FAILURE_PREFIX):
        return "invalid_cursor"
    if line.startswith(MATCH_FAILURE_PREFIX):
        return "invalid_matches"
    return None
