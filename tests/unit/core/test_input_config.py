"""Unit tests for YAML journal input configuration."""

from __future__ import annotations

import pytest

from core.errors import JournalTailConfigError
from core.input_config import load_input_config, parse_input_config
from core.types import RetryPolicy
from tests.journal_fixtures import fixture_path


def test_load_valid_input_config_parses_all_fields() -> None:
    """A complete config should populate every option."""
    options = load_input_config(str(fixture_path("config/valid_input.yaml")))

    assert options.name == "sshd"
    assert options.binary == "/usr/bin/journalctl"
    assert options.matches == ("_SYSTEMD_UNIT=sshd.service", "PRIORITY=3")
    assert (options.decoder, options.offset_method) == ("message", "oldest")
    assert options.retry == RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=10.0, jitter=0.0)


def test_load_minimal_input_config_applies_defaults() -> None:
    """Only the name should be required."""
    options = load_input_config(str(fixture_path("config/minimal_input.yaml")))

    assert (options.binary, options.matches, options.offset_method) == ("journalctl", (), "manual")
    assert options.retry == RetryPolicy()


@pytest.mark.parametrize(
    "fixture_name",
    [
        "config/unknown_field.yaml",
        "config/invalid_offset_method.yaml",
        "config/invalid_match.yaml",
        "config/unknown_retry_field.yaml",
        "config/missing_name.yaml",
    ],
)
def test_load_invalid_input_config_raises_error(fixture_name: str) -> None:
    """Schema violations should raise configuration errors."""
    with pytest.raises(JournalTailConfigError):
        load_input_config(str(fixture_path(fixture_name)))
    assert True


def test_load_missing_input_config_raises_error(tmp_path) -> None:
    """A missing config file should raise a configuration error."""
    with pytest.raises(JournalTailConfigError):
        load_input_config(str(tmp_path / "absent.yaml"))
    assert True


def test_load_malformed_yaml_raises_error(tmp_path) -> None:
    """Malformed YAML should raise a configuration error."""
    config_path = tmp_path / "broken.yaml"
    config_path.write_text("name: [unterminated\n", encoding="utf-8")

    with pytest.raises(JournalTailConfigError):
        load_input_config(str(config_path))
    assert True


def test_parse_rejects_unsupported_version() -> None:
    """Only version 1 configs should be accepted."""
    with pytest.raises(JournalTailConfigError):
        parse_input_config({"version": 2, "name": "syslog"})
    assert True


def test_parse_rejects_negative_retry_delay() -> None:
    """Retry delays should not be negative."""
    with pytest.raises(JournalTailConfigError):
        parse_input_config({"name": "syslog", "retries": {"base_delay": -1}})
    assert True


def test_parse_accepts_unbounded_retries() -> None:
    """Zero max attempts should be accepted as retry forever."""
    options = parse_input_config({"name": "syslog", "retries": {"max_attempts": 0}})

    assert options.retry.max_attempts == 0
