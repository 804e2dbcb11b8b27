"""
Timestamp Extractor

Locates the timestamp substring of a line with a one-group pattern and
parses it with a TimeFormat. A successful extraction remembers where the
substring sits so the line can later be re-emitted with the mapped
wall-clock timestamp in its place.

Usage:
    extractor = TimestampExtractor(re.compile(r"^(\\S+ \\S+)"), TimeFormat())
    match = extractor.extract("2023-01-01 00:00:01.000 Log line 1")
    if match is not None:
        text = match.rewrite(mapper.map(match.timestamp))
"""

import re
from dataclasses import dataclass
from datetime import datetime

from .time_format import TimeFormat


DEFAULT_TIME_REGEX = r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3})"


@dataclass(frozen=True)
class TimestampMatch:
    """A resolved timestamp and the position of its substring in the line."""

    line: str
    timestamp: datetime
    start: int
    end: int
    time_format: TimeFormat

    def rewrite(self, wall_time: datetime) -> str:
        """Return the line with the original timestamp replaced by ``wall_time``."""
        return f"{self.line[: self.start]}{self.time_format.format(wall_time)}{self.line[self.end :]}"


class TimestampExtractor:
    """Pulls a log timestamp out of a line. Stateless."""

    def __init__(self, pattern: re.Pattern[str], time_format: TimeFormat):
        if pattern.groups != 1:
            msg = f"Timestamp pattern must have exactly one capture group, got {pattern.groups}: {pattern.pattern!r}"
            raise ValueError(msg)
        self._pattern = pattern
        self._time_format = time_format

    @property
    def time_format(self) -> TimeFormat:
        return self._time_format

    def extract(self, line: str) -> TimestampMatch | None:
        """
        Resolve the timestamp of a line.

        Returns:
            TimestampMatch on success, None when the pattern does not match,
            the group did not participate, or the capture does not parse
        """
        found = self._pattern.search(line)
        if found is None or found.group(1) is None:
            return None

        # Reason: unparsable captures are a per-line condition, the caller falls back to the batch anchor
        try:  # nosemgrep: forbid-try-except
            timestamp = self._time_format.parse(found.group(1))
        except ValueError:
            return None

        start, end = found.span(1)
        return TimestampMatch(
            line=line,
            timestamp=timestamp,
            start=start,
            end=end,
            time_format=self._time_format,
        )
