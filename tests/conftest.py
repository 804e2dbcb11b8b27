"""Pytest configuration and shared fixtures for tests.

This module provides common pytest fixtures that are shared across
unit and integration tests.
"""

from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from tests.utils.clock import FakeClock
from tests.utils.logs import write_log


# ============================================================
# Clock Fixtures
# ============================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    """Wall clock that only advances on demand."""
    return FakeClock()


# ============================================================
# Path Fixtures
# ============================================================


@pytest.fixture
def log_file(tmp_path: Path) -> Callable[[Iterable[str]], Path]:
    """Factory writing the given lines to a temporary log file."""

    def _write(lines: Iterable[str]) -> Path:
        return write_log(tmp_path / "replay.log", lines)

    return _write
