"""Pytest configuration for integration tests.

Provides a callback recorder that keeps each replayed line together with
the monotonic time it was emitted at.
"""

import time
from dataclasses import dataclass, field

import pytest


@dataclass
class EmittedLines:
    """Callback collecting (monotonic time, line) pairs."""

    started_at: float = field(default_factory=time.monotonic)
    entries: list[tuple[float, str]] = field(default_factory=list)

    def __call__(self, line: str) -> None:
        self.entries.append((time.monotonic() - self.started_at, line))

    @property
    def lines(self) -> list[str]:
        return [line for _, line in self.entries]

    @property
    def offsets(self) -> list[float]:
        return [offset for offset, _ in self.entries]


@pytest.fixture
def emitted() -> EmittedLines:
    return EmittedLines()
