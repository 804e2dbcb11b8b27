"""
Integration tests for LogReplayer

Drives complete replay sessions over temporary log files with the real
clock and checks emission order, timing and timestamp rewriting.
"""

import asyncio
import io
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from log_replay import (
    CancellationToken,
    ConfigurationError,
    IOFailure,
    LogReplayer,
    ReplayerOptions,
    ReplayState,
    TimeFormat,
)
from tests.utils.logs import log_line
from tests.utils.result_assertions import assert_error, assert_ok


FAST = ReplayerOptions(batch_window_ms=50)

TS_LEN = len("2023-01-01 00:00:01.000")


def wall_time_of(line: str) -> datetime:
    """Parse the rewritten timestamp at the start of a replayed line."""
    return TimeFormat().parse(line[:TS_LEN])


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


@pytest.mark.asyncio
async def test_replay_reproduces_original_timing(log_file, emitted):
    """Three lines at T0, T0+1s, T0+3s come out at ~W, W+1s, W+3s with rewritten timestamps."""
    # given
    path = log_file([log_line(0, "Log line 1"), log_line(1, "Log line 2"), log_line(3, "Log line 3")])
    replayer = LogReplayer(path, ReplayerOptions(batch_window_ms=500))
    wall_start = utc_now_naive()

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["Log line 1", "Log line 2", "Log line 3"]
    for offset, expected in zip(emitted.offsets, [0, 1, 3], strict=True):
        assert abs(offset - expected) < 0.15
    for line, expected in zip(emitted.lines, [0, 1, 3], strict=True):
        assert abs(wall_time_of(line) - (wall_start + timedelta(seconds=expected))) < timedelta(milliseconds=200)
    assert stats.lines_emitted == 3
    assert stats.batches == 3
    assert stats.passes == 1
    assert replayer.state == ReplayState.TERMINATED


@pytest.mark.asyncio
async def test_lines_within_window_are_emitted_together(log_file, emitted):
    # given
    path = log_file(
        [log_line(0, "a"), log_line(0.01, "b"), log_line(0.02, "c"), log_line(0.2, "d")]
    )
    replayer = LogReplayer(path, FAST)

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["a", "b", "c", "d"]
    assert stats.batches == 2
    assert max(emitted.offsets[:3]) < 0.05
    assert emitted.offsets[3] >= 0.15


@pytest.mark.asyncio
async def test_filtered_lines_are_never_resolved_or_emitted(log_file, emitted):
    # given
    path = log_file(
        [
            log_line(0, "GET /a"),
            "POST body without any timestamp",
            log_line(0.05, "POST /b"),
            log_line(0.1, "GET /c"),
        ]
    )
    replayer = LogReplayer(path, ReplayerOptions(filter_regex="GET", batch_window_ms=50))

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["GET /a", "GET /c"]
    assert stats.lines_filtered == 2
    assert stats.lines_unresolved == 0


@pytest.mark.asyncio
async def test_lines_before_log_anchor_are_dropped(log_file, emitted):
    # given
    path = log_file([log_line(0, "first"), log_line(-5, "stale"), log_line(0.05, "second")])
    replayer = LogReplayer(path, FAST)

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["first", "second"]
    assert stats.lines_dropped == 1


@pytest.mark.asyncio
async def test_unresolved_lines_inherit_open_batch(log_file, emitted):
    """Continuation lines ride with the batch before them; leading ones are dropped."""
    # given
    path = log_file(
        [
            "=== log start ===",
            log_line(0, "request failed"),
            "    at Handler.run(Handler.java:7)",
            log_line(0.2, "recovered"),
        ]
    )
    replayer = LogReplayer(path, FAST)

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert emitted.lines[1] == "    at Handler.run(Handler.java:7)"
    assert [line[TS_LEN + 1 :] for line in (emitted.lines[0], emitted.lines[2])] == ["request failed", "recovered"]
    assert len(emitted.lines) == 3
    assert emitted.offsets[1] < 0.1
    assert stats.lines_unresolved == 2
    assert stats.lines_dropped == 1


@pytest.mark.asyncio
async def test_crlf_line_endings_are_stripped(tmp_path: Path, emitted):
    # given
    path = tmp_path / "windows.log"
    path.write_bytes(f"{log_line(0, 'one')}\r\n{log_line(0.01, 'two')}\r\n".encode())
    replayer = LogReplayer(path, FAST)

    # when
    assert_ok(await replayer.start(CancellationToken(), emitted))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["one", "two"]


@pytest.mark.asyncio
async def test_no_callbacks_after_eof_without_loop(log_file, emitted):
    # given
    path = log_file([log_line(0, "only")])
    replayer = LogReplayer(path, FAST)

    # when
    stats = assert_ok(await replayer.start(CancellationToken(), emitted))
    await asyncio.sleep(0.1)

    # then
    assert len(emitted.lines) == 1
    assert stats.passes == 1
    assert stats.cancelled is False


@pytest.mark.asyncio
async def test_loop_restarts_without_going_back_in_time(log_file, emitted):
    # given
    path = log_file([log_line(0, "first"), log_line(0.1, "second")])
    replayer = LogReplayer(path, ReplayerOptions(loop=True, batch_window_ms=50))
    token = CancellationToken()

    def stop_after_five(line: str) -> None:
        emitted(line)
        if len(emitted.lines) == 5:
            token.cancel()

    # when
    stats = assert_ok(await replayer.start(token, stop_after_five))

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["first", "second", "first", "second", "first"]
    assert emitted.offsets == sorted(emitted.offsets)
    wall_times = [wall_time_of(line) for line in emitted.lines]
    assert wall_times == sorted(wall_times)
    assert wall_times[2] >= wall_times[1]
    # second pass keeps the original 100ms gap
    assert abs((emitted.offsets[3] - emitted.offsets[2]) - 0.1) < 0.05
    assert stats.passes == 3
    assert stats.cancelled is True


@pytest.mark.asyncio
async def test_loop_stops_when_pass_emits_nothing(log_file, emitted):
    """A file without resolvable timestamps does not spin forever in loop mode."""
    # given
    path = log_file(["no timestamp here", "nor here"])
    replayer = LogReplayer(path, ReplayerOptions(loop=True))

    # when
    stats = assert_ok(await asyncio.wait_for(replayer.start(CancellationToken(), emitted), timeout=2))

    # then
    assert emitted.lines == []
    assert stats.passes == 1
    assert stats.lines_dropped == 2


@pytest.mark.asyncio
async def test_cancel_mid_wait_halts_replay(log_file, emitted):
    # given
    path = log_file([log_line(0, "now"), log_line(5, "much later")])
    replayer = LogReplayer(path, FAST)
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.1, token.cancel)
    start = time.monotonic()

    # when
    stats = assert_ok(await replayer.start(token, emitted))
    await asyncio.sleep(0.1)

    # then
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["now"]
    assert time.monotonic() - start < 1.0
    assert stats.cancelled is True
    assert replayer.state == ReplayState.TERMINATED


@pytest.mark.asyncio
async def test_cancelled_before_start_emits_nothing(log_file, emitted):
    # given
    path = log_file([log_line(0, "a")])
    token = CancellationToken()
    token.cancel()

    # when
    stats = assert_ok(await LogReplayer(path, FAST).start(token, emitted))

    # then
    assert emitted.lines == []
    assert stats.lines_read == 0


@pytest.mark.asyncio
async def test_missing_file_is_io_failure(tmp_path: Path, emitted):
    # given
    replayer = LogReplayer(tmp_path / "missing.log")

    # when
    err = assert_error(await replayer.start(CancellationToken(), emitted))

    # then
    assert isinstance(err, IOFailure)
    assert "missing.log" in str(err)
    assert replayer.state == ReplayState.TERMINATED


@pytest.mark.asyncio
async def test_directory_is_io_failure(tmp_path: Path, emitted):
    # when
    err = assert_error(await LogReplayer(tmp_path).start(CancellationToken(), emitted))

    # then
    assert isinstance(err, IOFailure)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "options",
    [ReplayerOptions(filter_regex="(unclosed"), ReplayerOptions(time_regex=r"\d{4}")],
)
async def test_bad_patterns_fail_before_reading(options: ReplayerOptions, tmp_path: Path, emitted):
    """Configuration errors are reported even when the file does not exist."""
    # given
    replayer = LogReplayer(tmp_path / "missing.log", options)

    # when
    err = assert_error(await replayer.start(CancellationToken(), emitted))

    # then
    assert isinstance(err, ConfigurationError)
    assert emitted.lines == []


@pytest.mark.asyncio
async def test_callback_errors_propagate(log_file):
    # given
    path = log_file([log_line(0, "boom")])

    def failing(line: str) -> None:
        raise RuntimeError(f"sink rejected {line!r}")

    # when / then
    with pytest.raises(RuntimeError, match="sink rejected"):
        await LogReplayer(path, FAST).start(CancellationToken(), failing)


@pytest.mark.asyncio
async def test_callback_os_errors_are_not_reported_as_read_failures(log_file):
    """A closed output pipe is the sink's problem, not the input file's."""
    # given
    path = log_file([log_line(0, "to a closed pipe")])
    replayer = LogReplayer(path, FAST)

    def closed_stdout(line: str) -> None:
        raise BrokenPipeError(32, "Broken pipe")

    # when / then
    with pytest.raises(BrokenPipeError):
        await replayer.start(CancellationToken(), closed_stdout)
    assert replayer.state == ReplayState.TERMINATED


class FailingReader(io.StringIO):
    """In-memory log whose n-th line read fails like a dying disk."""

    def __init__(self, lines: list[str], fail_on: int):
        super().__init__("".join(f"{line}\n" for line in lines))
        self._fail_on = fail_on
        self._reads = 0

    def __next__(self) -> str:
        self._reads += 1
        if self._reads == self._fail_on:
            raise OSError(5, "Input/output error")
        return super().__next__()


@pytest.mark.asyncio
async def test_read_error_mid_scan_is_io_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, emitted):
    # given
    reader = FailingReader([log_line(0, "first"), log_line(0.1, "second"), log_line(0.2, "third")], fail_on=3)
    monkeypatch.setattr(Path, "open", lambda self, *args, **kwargs: reader)
    replayer = LogReplayer(tmp_path / "flaky.log", FAST)

    # when
    err = assert_error(await replayer.start(CancellationToken(), emitted))

    # then
    assert isinstance(err, IOFailure)
    assert "flaky.log" in str(err)
    assert "Input/output error" in str(err)
    # "second" was still waiting in the open batch when the read failed
    assert [line[TS_LEN + 1 :] for line in emitted.lines] == ["first"]
    assert replayer.state == ReplayState.TERMINATED
    assert reader.closed


@pytest.mark.asyncio
async def test_custom_format_is_rewritten_in_place(tmp_path: Path, emitted):
    # given
    path = tmp_path / "access.log"
    path.write_text(
        '10.0.0.1 - - [01/Jan/2023:00:00:01] "GET / HTTP/1.1" 200\n'
        '10.0.0.2 - - [01/Jan/2023:00:00:01] "GET /x HTTP/1.1" 404\n',
        encoding="utf-8",
    )
    options = ReplayerOptions(time_regex=r"\[([^\]]+)\]", time_format="DD/MMM/YYYY:HH:mm:ss")
    before = datetime.now(UTC).replace(microsecond=0, tzinfo=None)

    # when
    assert_ok(await LogReplayer(path, options).start(CancellationToken(), emitted))

    # then
    assert len(emitted.lines) == 2
    for line in emitted.lines:
        stamp = line[line.index("[") + 1 : line.index("]")]
        rewritten = datetime.strptime(stamp, "%d/%b/%Y:%H:%M:%S")
        assert abs(rewritten - before) <= timedelta(seconds=2)
    assert emitted.lines[1].endswith('"GET /x HTTP/1.1" 404')
