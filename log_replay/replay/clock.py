"""
Clock Mapper

Keeps the correspondence between log time (timestamps read from the file)
and wall time (the real clock at replay):

    wall = wall_anchor + (log_time - log_anchor)

The mapping is established by the first resolvable line of a session and
rebased once per loop restart, so a new pass over the same file continues
after the previous pass instead of jumping back in time.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ClockMapping:
    """(log_anchor, wall_anchor) pair for the current pass."""

    log_anchor: datetime
    wall_anchor: datetime

    def to_wall(self, log_time: datetime) -> datetime:
        return self.wall_anchor + (log_time - self.log_anchor)

    def rebased(self, session_start: datetime, elapsed: timedelta) -> "ClockMapping":
        return ClockMapping(log_anchor=self.log_anchor, wall_anchor=session_start + elapsed)


class ClockMapper:
    """
    Converts log time to wall time for one replay session.

    The session start instant is taken when the mapper is created; the
    mapping itself only exists once establish() has seen a log time.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._session_start = clock()
        self._mapping: ClockMapping | None = None

    @property
    def mapping(self) -> ClockMapping | None:
        return self._mapping

    @property
    def session_start(self) -> datetime:
        return self._session_start

    def is_established(self) -> bool:
        return self._mapping is not None

    def now(self) -> datetime:
        return self._clock()

    def establish(self, log_time: datetime) -> None:
        """Anchor ``log_time`` to now, unless already anchored for this session."""
        if self._mapping is None:
            self._mapping = ClockMapping(log_anchor=log_time, wall_anchor=self._clock())

    def map(self, log_time: datetime) -> datetime:
        if self._mapping is None:
            msg = "Clock mapping is not established"
            raise RuntimeError(msg)
        return self._mapping.to_wall(log_time)

    def is_before_anchor(self, log_time: datetime) -> bool:
        return self._mapping is not None and log_time < self._mapping.log_anchor

    def elapsed(self) -> timedelta:
        """Real time since the session started."""
        return self._clock() - self._session_start

    def rebase(self, elapsed: timedelta) -> None:
        """Move the wall anchor to ``session_start + elapsed`` (once per loop restart)."""
        if self._mapping is None:
            return
        self._mapping = self._mapping.rebased(self._session_start, elapsed)

    def delay_until(self, log_time: datetime) -> float:
        """Seconds until ``log_time`` is due on the wall clock, never negative."""
        delay = (self.map(log_time) - self._clock()).total_seconds()
        return max(delay, 0.0)
