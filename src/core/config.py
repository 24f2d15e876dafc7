"""Runtime configuration model for journaltail.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_MAX_RECORD_SIZE,
    DEFAULT_QUEUE_SIZE,
    MIN_MAX_RECORD_SIZE,
)
from core.errors import JournalTailConfigError


@dataclass(frozen=True)
class JournalTailConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for cursor checkpoints.
        max_record_size: Largest export record the parser buffers, in bytes.
        queue_size: Capacity of the entry and diagnostic handoff queues.
    """

    data_root: Path
    max_record_size: int
    queue_size: int

    @classmethod
    def from_env(cls) -> "JournalTailConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            JournalTailConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("JOURNALTAIL_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        max_record_size = _parse_positive_int(
            "JOURNALTAIL_MAX_RECORD_SIZE",
            os.getenv("JOURNALTAIL_MAX_RECORD_SIZE", str(DEFAULT_MAX_RECORD_SIZE)),
            MIN_MAX_RECORD_SIZE,
        )
        queue_size = _parse_positive_int(
            "JOURNALTAIL_QUEUE_SIZE",
            os.getenv("JOURNALTAIL_QUEUE_SIZE", str(DEFAULT_QUEUE_SIZE)),
            1,
        )
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            max_record_size=max_record_size,
            queue_size=queue_size,
        )


def _parse_positive_int(variable_name: str, raw_value: str, minimum: int) -> int:
    """Parse an integer environment value with a lower bound.

    Args:
        variable_name: Environment variable name for error messages.
        raw_value: Raw string from environment.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        JournalTailConfigError: If value is not an integer or below minimum.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise JournalTailConfigError(
            f"Invalid {variable_name} value: "
            f"expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if value < minimum:
        raise JournalTailConfigError(
            f"Invalid {variable_name} value: {value} is below the minimum of {minimum}."
        )
    return value
