"""Regex inclusion test applied before any timestamp processing."""

import re


DEFAULT_FILTER_REGEX = ".*"


class LineFilter:
    """Keeps lines the inclusion pattern matches anywhere in the text."""

    def __init__(self, pattern: re.Pattern[str]):
        self._pattern = pattern

    @property
    def pattern(self) -> re.Pattern[str]:
        return self._pattern

    def matches(self, line: str) -> bool:
        return self._pattern.search(line) is not None
