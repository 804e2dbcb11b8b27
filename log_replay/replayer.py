"""
Log Replayer

Replays a log file against the real clock: each line is emitted with the
delay it originally had relative to the first line, with its timestamp
rewritten to the current wall-clock equivalent.

Usage:
    from log_replay import CancellationToken, LogReplayer, ReplayerOptions

    replayer = LogReplayer("app.log", ReplayerOptions(loop=True))
    token = CancellationToken()

    match await replayer.start(token, print):
        case Ok(stats):
            logger.info(f"Replayed {stats.lines_emitted} lines")
        case Error(err):
            logger.error(f"Replay failed: {err}")

Session flow:
    Idle → Scanning → {Filtering → Resolving → Accumulating → Waiting → Flushing}*
         → (EOF) → {Rewinding → Scanning | Terminated}

Cancellation moves any non-terminal state straight to Terminated.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import TextIO

from loguru import logger

from .config import ReplayerOptions
from .errors import IOFailure, ReplayError
from .result import Error, Ok, Result
from .replay.batch import Batch, BatchAccumulator, Line
from .replay.clock import Clock, ClockMapper, utc_now
from .replay.line_filter import LineFilter
from .replay.scheduler import CancellationToken, LineCallback, Scheduler
from .replay.time_format import TimeFormat
from .replay.timestamps import TimestampExtractor


class ReplayState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    FILTERING = "filtering"
    RESOLVING = "resolving"
    ACCUMULATING = "accumulating"
    WAITING = "waiting"
    FLUSHING = "flushing"
    REWINDING = "rewinding"
    TERMINATED = "terminated"


@dataclass
class ReplayStats:
    """Counters for one replay session."""

    lines_read: int = 0
    lines_filtered: int = 0
    lines_unresolved: int = 0
    lines_dropped: int = 0
    lines_emitted: int = 0
    batches: int = 0
    passes: int = 0
    cancelled: bool = False


class _Session:
    """Per-session components, built once the patterns have compiled."""

    def __init__(
        self,
        options: ReplayerOptions,
        line_filter: LineFilter,
        extractor: TimestampExtractor,
        token: CancellationToken,
        callback: LineCallback,
        clock: Clock,
    ):
        self.options = options
        self.line_filter = line_filter
        self.extractor = extractor
        self.token = token
        self.mapper = ClockMapper(clock)
        self.scheduler = Scheduler(self.mapper, token)
        self.stats = ReplayStats()
        self._callback = callback
        self._emitted_this_pass = 0

    def emit(self, text: str) -> None:
        self.stats.lines_emitted += 1
        self._emitted_this_pass += 1
        self._callback(text)

    def start_pass(self) -> None:
        self.stats.passes += 1
        self._emitted_this_pass = 0

    @property
    def emitted_this_pass(self) -> int:
        return self._emitted_this_pass


class LogReplayer:
    """Replay Loop Controller: drives scan, filter, extract, batch, schedule."""

    def __init__(
        self,
        input_file: str | Path,
        options: ReplayerOptions | None = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize log replayer.

        Args:
            input_file: Log file to replay
            options: Replay options (default: ReplayerOptions())
            clock: Wall clock returning aware datetimes (default: UTC now)
        """
        self._input_file = Path(input_file)
        self._options = options or ReplayerOptions()
        self._clock = clock
        self._state = ReplayState.IDLE

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def input_file(self) -> Path:
        return self._input_file

    async def start(
        self,
        token: CancellationToken,
        callback: LineCallback,
    ) -> Result[ReplayStats, ReplayError]:
        """
        Run one replay session until EOF (no loop), cancellation, or failure.

        Args:
            token: Cancellation token, observed between lines and during waits
            callback: Called once per emitted line, in file order

        Returns:
            Ok(ReplayStats) when the session ends normally or is cancelled,
            Error(ConfigurationError) for invalid patterns,
            Error(IOFailure) when the file cannot be opened or read
        """
        self._state = ReplayState.IDLE
        match self._open_session(token, callback):
            case Error(err):
                self._state = ReplayState.TERMINATED
                logger.error(f"[LogReplayer] {err}")
                return Error(err)
            case Ok(session):
                pass

        logger.info(
            f"[LogReplayer] Replaying {self._input_file} "
            f"(loop={self._options.loop}, window={self._options.batch_window_ms}ms)"
        )

        # Reason: open/read failures are returned to the caller; callback errors propagate untouched
        try:  # nosemgrep: forbid-try-except
            with self._open_input() as f:
                await self._replay(f, session)
        except IOFailure as failure:
            logger.error(f"[LogReplayer] {failure}")
            return Error(failure)
        finally:
            self._state = ReplayState.TERMINATED

        stats = session.stats
        stats.cancelled = token.is_cancelled
        logger.info(f"[LogReplayer] Session finished: {stats}")
        return Ok(stats)

    def _open_session(self, token: CancellationToken, callback: LineCallback) -> Result[_Session, ReplayError]:
        match self._options.compile_filter():
            case Error(err):
                return Error(err)
            case Ok(filter_pattern):
                pass
        match self._options.compile_time_regex():
            case Error(err):
                return Error(err)
            case Ok(time_pattern):
                pass

        return Ok(
            _Session(
                options=self._options,
                line_filter=LineFilter(filter_pattern),
                extractor=TimestampExtractor(time_pattern, TimeFormat(self._options.time_format)),
                token=token,
                callback=callback,
                clock=self._clock,
            )
        )

    def _read_failure(self, e: OSError) -> IOFailure:
        return IOFailure(f"Cannot read {self._input_file}: {e}")

    def _open_input(self) -> TextIO:
        try:  # nosemgrep: forbid-try-except
            return self._input_file.open(encoding="utf-8", errors="replace")
        except OSError as e:
            raise self._read_failure(e) from e

    def _read_lines(self, f: TextIO) -> Iterator[str]:
        """Yield raw lines from the current position; OS read errors become IOFailure."""
        lines = iter(f)
        while True:
            try:  # nosemgrep: forbid-try-except
                raw = next(lines)
            except StopIteration:
                return
            except OSError as e:
                raise self._read_failure(e) from e
            yield raw

    def _rewind(self, f: TextIO) -> None:
        try:  # nosemgrep: forbid-try-except
            f.seek(0)
        except OSError as e:
            raise self._read_failure(e) from e

    async def _replay(self, f: TextIO, session: _Session) -> None:
        while True:
            session.start_pass()
            await self._run_pass(f, session)

            if session.token.is_cancelled:
                logger.info("[LogReplayer] Cancelled, terminating")
                return
            if not session.options.loop:
                logger.debug("[LogReplayer] End of file, loop disabled")
                return
            if session.emitted_this_pass == 0:
                logger.warning(f"[LogReplayer] Pass {session.stats.passes} emitted no lines, not looping")
                return

            self._state = ReplayState.REWINDING
            self._rewind(f)
            elapsed = session.mapper.elapsed()
            session.mapper.rebase(elapsed)
            logger.debug(f"[LogReplayer] Rewound for pass {session.stats.passes + 1}, rebased by {elapsed}")

    async def _run_pass(self, f: TextIO, session: _Session) -> None:
        accumulator = BatchAccumulator(timedelta(milliseconds=session.options.batch_window_ms))
        stats = session.stats

        self._state = ReplayState.SCANNING
        for raw in self._read_lines(f):
            if session.token.is_cancelled:
                return
            stats.lines_read += 1
            text = raw.rstrip("\r\n")

            self._state = ReplayState.FILTERING
            if not session.line_filter.matches(text):
                stats.lines_filtered += 1
                continue

            self._state = ReplayState.RESOLVING
            resolved = session.extractor.extract(text)

            self._state = ReplayState.ACCUMULATING
            if resolved is None:
                stats.lines_unresolved += 1
                if not accumulator.add_unresolved(Line(text)):
                    logger.trace(f"[LogReplayer] Dropping line without timestamp: {text!r}")
                    stats.lines_dropped += 1
                continue

            session.mapper.establish(resolved.timestamp)
            if session.mapper.is_before_anchor(resolved.timestamp):
                stats.lines_dropped += 1
                continue

            line = Line(resolved.rewrite(session.mapper.map(resolved.timestamp)), resolved.timestamp)
            completed = accumulator.add(resolved.timestamp, line)
            if completed is not None and not await self._schedule(completed, session):
                return

        completed = accumulator.flush()
        if completed is not None:
            await self._schedule(completed, session)

    async def _schedule(self, batch: Batch, session: _Session) -> bool:
        def emit(text: str) -> None:
            self._state = ReplayState.FLUSHING
            session.emit(text)

        self._state = ReplayState.WAITING
        flushed = await session.scheduler.run(batch, emit)
        if flushed:
            session.stats.batches += 1
        self._state = ReplayState.SCANNING
        return flushed
