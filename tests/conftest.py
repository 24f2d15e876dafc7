"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_ENV_VARIABLES = ("JOURNALTAIL_DATA_ROOT", "JOURNALTAIL_MAX_RECORD_SIZE", "JOURNALTAIL_QUEUE_SIZE")


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    src_path = Path(__file__).resolve().parent.parent / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host JOURNALTAIL_* settings out of tests and checkpoints out of the repo."""
    for variable_name in _ENV_VARIABLES:
        monkeypatch.delenv(variable_name, raising=False)
    monkeypatch.setenv("JOURNALTAIL_DATA_ROOT", str(tmp_path / "default-data-root"))
