"""Typed YAML configuration for journal inputs.

This module loads and validates the YAML file describing one journal
input: the journalctl binary, matches, decoder, start offset, and the
restart policy. One strict schema keeps CLI and SDK callers consistent.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence, cast

import yaml

from core.constants import (
    DEFAULT_JOURNALCTL_BIN,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    OFFSET_METHOD_MANUAL,
    SUPPORTED_OFFSET_METHODS,
)
from core.errors import JournalTailConfigError
from core.types import JournalInputOptions, OffsetMethod, RetryPolicy

_ROOT_KEYS = {"version", "name", "bin", "matches", "decoder", "offset_method", "retries"}
_RETRY_KEYS = {"max_attempts", "base_delay", "max_delay", "jitter"}


def load_input_config(config_path: str) -> JournalInputOptions:
    """Load and validate a YAML journal input configuration from disk.

    Args:
        config_path: File path to the YAML configuration.

    Returns:
        Fully validated input options.

    Raises:
        JournalTailConfigError: If the file is missing, invalid, or fails schema checks.
    """
    payload = _load_yaml_payload(config_path)
    return parse_input_config(payload)


def parse_input_config(payload: object) -> JournalInputOptions:
    """Validate an already-decoded configuration payload."""
    root_mapping = _expect_mapping(payload, "input config root")
    _validate_keys(root_mapping, _ROOT_KEYS, "input config")
    _parse_version(root_mapping)
    name = _optional_string(root_mapping, "name")
    if name is None:
        raise JournalTailConfigError("Input config missing required field 'name'.")
    return JournalInputOptions(
        name=name,
        binary=_optional_string(root_mapping, "bin") or DEFAULT_JOURNALCTL_BIN,
        matches=_parse_matches(root_mapping),
        decoder=_optional_string(root_mapping, "decoder"),
        offset_method=_parse_offset_method(root_mapping),
        retry=_parse_retry_policy(root_mapping),
    )


def _load_yaml_payload(config_path: str) -> object:
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise JournalTailConfigError(
            f"Input config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise JournalTailConfigError(
            f"Failed to read input config at {config_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise JournalTailConfigError(
            f"Failed to parse YAML input config at {config_file}: {error}. "
            "Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise JournalTailConfigError(
            f"Input config at {config_file} is empty. Define at least 'name'."
        )
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise JournalTailConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise JournalTailConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise JournalTailConfigError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _parse_version(root_mapping: Mapping[str, object]) -> None:
    raw_version = root_mapping.get("version", 1)
    if isinstance(raw_version, bool) or not isinstance(raw_version, int):
        raise JournalTailConfigError("Input config field 'version' must be an integer.")
    if raw_version != 1:
        raise JournalTailConfigError(
            f"Unsupported input config version {raw_version}. Use version: 1."
        )


def _parse_matches(root_mapping: Mapping[str, object]) -> tuple[str, ...]:
    raw_matches = root_mapping.get("matches")
    if raw_matches is None:
        return ()
    matches = []
    for index, raw_match in enumerate(_expect_sequence(raw_matches, "input config matches")):
        if not isinstance(raw_match, str) or not raw_match.strip():
            raise JournalTailConfigError(
                f"Invalid match #{index + 1}: expected a non-empty string like "
                "'_SYSTEMD_UNIT=sshd.service'."
            )
        matches.append(raw_match.strip())
    return tuple(matches)


def _parse_offset_method(root_mapping: Mapping[str, object]) -> OffsetMethod:
    raw_method = _optional_string(root_mapping, "offset_method") or OFFSET_METHOD_MANUAL
    if raw_method in SUPPORTED_OFFSET_METHODS:
        return cast(OffsetMethod, raw_method)
    raise JournalTailConfigError(
        f"Unsupported offset_method '{raw_method}'. "
        f"Use one of: {', '.join(SUPPORTED_OFFSET_METHODS)}."
    )


def _parse_retry_policy(root_mapping: Mapping[str, object]) -> RetryPolicy:
    raw_retries = root_mapping.get("retries")
    if raw_retries is None:
        return RetryPolicy()
    retry_mapping = _expect_mapping(raw_retries, "input config retries")
    _validate_keys(retry_mapping, _RETRY_KEYS, "input config retries")
    max_attempts = _optional_number(retry_mapping, "max_attempts", DEFAULT_RETRY_MAX_ATTEMPTS)
    if max_attempts != int(max_attempts):
        raise JournalTailConfigError("Input config field 'max_attempts' must be an integer.")
    return RetryPolicy(
        max_attempts=int(max_attempts),
        base_delay=_optional_number(retry_mapping, "base_delay", DEFAULT_RETRY_BASE_DELAY),
        max_delay=_optional_number(retry_mapping, "max_delay", DEFAULT_RETRY_MAX_DELAY),
        jitter=_optional_number(retry_mapping, "jitter", DEFAULT_RETRY_JITTER),
    )


def _optional_string(mapping: Mapping[str, object], field_name: str) -> str | None:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        normalized_value = raw_value.strip()
        return normalized_value if normalized_value else None
    raise JournalTailConfigError(
        f"Input config field '{field_name}' must be a string when provided."
    )


def _optional_number(mapping: Mapping[str, object], field_name: str, default: float) -> float:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        raise JournalTailConfigError(f"Input config field '{field_name}' must be numeric.")
    if raw_value < 0:
        raise JournalTailConfigError(f"Input config field '{field_name}' must not be negative.")
    return float(raw_value)


def _validate_keys(mapping: Mapping[str, object], allowed_keys: set[str], context: str) -> None:
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise JournalTailConfigError(f"{context} contains unknown fields: {', '.join(unknown_keys)}.")
