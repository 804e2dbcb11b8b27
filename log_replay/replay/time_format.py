"""
Timestamp format descriptors.

A descriptor is written with the same tokens loguru uses for ``{time:...}``:

    YYYY-MM-DD HH:mm:ss.SSS   ->  2023-01-01 00:00:01.000
    MMM DD HH:mm:ss           ->  Jan 01 00:00:01
    D/M/YYYY H:mm             ->  1/1/2023 0:00
    [day] DD, HH:mm           ->  day 01, 00:00

Supported tokens:
    YYYY YY        year (4 / 2 digits)
    MMMM MMM MM M  month (full name / abbreviation / 2 digits / unpadded)
    DD D           day of month (2 digits / unpadded)
    dddd ddd       weekday (full name / abbreviation)
    HH H           hour, 24h (2 digits / unpadded)
    hh h           hour, 12h (2 digits / unpadded)
    mm m           minute (2 digits / unpadded)
    ss s           second (2 digits / unpadded)
    S ... SSSSSS   fraction of a second, 1 to 6 digits (SSS = milliseconds)
    A              AM/PM
    ZZ Z           UTC offset (+0000 / +00:00)

Day of year (DDD, DDDD), weekday numbers and timestamps (X, x) are not
supported. Unpadded tokens make a bare letter significant, so literal text
containing D, H, M, h, m, s or S must be bracketed. Text inside ``[...]`` is
literal. A descriptor containing ``%`` is used verbatim as a
strptime/strftime format.
"""

import re
from collections.abc import Callable
from datetime import datetime


_TOKEN_RE = re.compile(
    r"\[[^\]]*\]|YYYY|YY|MMMM|MMM|MM|M|DD|D|dddd|ddd|HH|H|hh|h|mm|m|ss|s|S{1,6}|A|ZZ|Z"
)

# token -> strptime directive
_DIRECTIVES: dict[str, str] = {
    "YYYY": "%Y",
    "YY": "%y",
    "MMMM": "%B",
    "MMM": "%b",
    "MM": "%m",
    "M": "%m",
    "DD": "%d",
    "D": "%d",
    "dddd": "%A",
    "ddd": "%a",
    "HH": "%H",
    "H": "%H",
    "hh": "%I",
    "h": "%I",
    "mm": "%M",
    "m": "%M",
    "ss": "%S",
    "s": "%S",
    **{"S" * digits: "%f" for digits in range(1, 7)},
    "A": "%p",
    "ZZ": "%z",
    "Z": "%z",
}

# strptime reads one or two digits for these; strftime always pads
_UNPADDED: dict[str, Callable[[datetime], int]] = {
    "M": lambda moment: moment.month,
    "D": lambda moment: moment.day,
    "H": lambda moment: moment.hour,
    "h": lambda moment: moment.hour % 12 or 12,
    "m": lambda moment: moment.minute,
    "s": lambda moment: moment.second,
}

DEFAULT_TIME_FORMAT = "YYYY-MM-DD HH:mm:ss.SSS"


def _render_offset(moment: datetime) -> str:
    offset = moment.strftime("%z")
    if not offset:
        return ""
    return f"{offset[:3]}:{offset[3:5]}"


class TimeFormat:
    """Parses and renders timestamps with a single descriptor."""

    def __init__(self, descriptor: str = DEFAULT_TIME_FORMAT):
        self._descriptor = descriptor
        self._strftime_mode = "%" in descriptor
        # (kind, value) where kind is "literal" or a token name
        self._parts: list[tuple[str, str]] = [] if self._strftime_mode else self._tokenize(descriptor)
        self._parse_format = descriptor if self._strftime_mode else self._build_parse_format()

    @property
    def descriptor(self) -> str:
        return self._descriptor

    @staticmethod
    def _tokenize(descriptor: str) -> list[tuple[str, str]]:
        parts: list[tuple[str, str]] = []
        pos = 0
        for match in _TOKEN_RE.finditer(descriptor):
            if match.start() > pos:
                parts.append(("literal", descriptor[pos : match.start()]))
            token = match.group(0)
            if token.startswith("["):
                parts.append(("literal", token[1:-1]))
            else:
                parts.append((token, token))
            pos = match.end()
        if pos < len(descriptor):
            parts.append(("literal", descriptor[pos:]))
        return parts

    def _build_parse_format(self) -> str:
        chunks = []
        for kind, value in self._parts:
            if kind == "literal":
                chunks.append(value)
            else:
                chunks.append(_DIRECTIVES[kind])
        return "".join(chunks)

    def parse(self, text: str) -> datetime:
        """
        Parse a captured timestamp.

        Raises:
            ValueError: If the text does not match the descriptor
        """
        return datetime.strptime(text, self._parse_format)

    def format(self, moment: datetime) -> str:
        """Render a timestamp with the same descriptor used for parsing."""
        if self._strftime_mode:
            return moment.strftime(self._descriptor)

        chunks = []
        for kind, value in self._parts:
            if kind == "literal":
                chunks.append(value)
            elif kind.startswith("S"):
                # truncated, never rounded: SSS of .0079 is 007
                chunks.append(f"{moment.microsecond:06d}"[: len(kind)])
            elif kind in _UNPADDED:
                chunks.append(str(_UNPADDED[kind](moment)))
            elif kind == "Z":
                chunks.append(_render_offset(moment))
            else:
                chunks.append(moment.strftime(_DIRECTIVES[kind]))
        return "".join(chunks)

    def __repr__(self) -> str:
        return f"TimeFormat({self._descriptor!r})"
