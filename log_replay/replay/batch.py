"""
Batch Accumulator

Lines whose log times fall within a proximity window of the first member
are treated as simultaneous and scheduled together, so the replay waits
once per batch instead of once per line.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta


DEFAULT_BATCH_WINDOW_MS = 1000


@dataclass(frozen=True)
class Line:
    """Line text ready for emission plus its resolved log time (None if unresolved)."""

    text: str
    timestamp: datetime | None = None


@dataclass
class Batch:
    """Non-empty, ordered group of lines anchored at the first member's log time."""

    anchor: datetime
    lines: list[Line] = field(default_factory=list)
    latest: datetime | None = None

    @property
    def span(self) -> timedelta:
        if self.latest is None:
            return timedelta(0)
        return self.latest - self.anchor

    def __len__(self) -> int:
        return len(self.lines)


class BatchAccumulator:
    """Groups resolved lines in file order into batches."""

    def __init__(self, window: timedelta = timedelta(milliseconds=DEFAULT_BATCH_WINDOW_MS)):
        if window <= timedelta(0):
            msg = f"Batch window must be positive, got {window}"
            raise ValueError(msg)
        self._window = window
        self._open: Batch | None = None

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def open_batch(self) -> Batch | None:
        return self._open

    def add(self, timestamp: datetime, line: Line) -> Batch | None:
        """
        Add a resolved line.

        Returns:
            The completed batch when ``timestamp`` falls outside the window
            of the open batch, otherwise None
        """
        if self._open is None:
            self._open = Batch(anchor=timestamp, lines=[line], latest=timestamp)
            return None

        if timestamp - self._open.anchor > self._window:
            completed = self._open
            self._open = Batch(anchor=timestamp, lines=[line], latest=timestamp)
            return completed

        self._open.lines.append(line)
        if self._open.latest is None or timestamp > self._open.latest:
            self._open.latest = timestamp
        return None

    def add_unresolved(self, line: Line) -> bool:
        """Attach a line without timestamp to the open batch; False means drop it."""
        if self._open is None:
            return False
        self._open.lines.append(line)
        return True

    def flush(self) -> Batch | None:
        """Hand over the open batch regardless of the window (end of file)."""
        completed, self._open = self._open, None
        return completed
