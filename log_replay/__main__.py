"""
Log Replay entry point.

Replays INPUT_FILE to stdout until end of file (or forever with LOOP=true).
SIGINT/SIGTERM cancel the replay cleanly.

Usage:
    INPUT_FILE=app.log LOOP=true python -m log_replay
"""

import asyncio
import signal
import sys

from loguru import logger

from .config import load_settings
from .errors import ConfigurationError
from .logging_config import configure_logging
from .replay import CancellationToken
from .replayer import LogReplayer
from .result import Error, Ok


def _print_line(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


async def _run() -> int:
    # Reason: a bad environment is reported once and ends the process with a failure code
    try:  # nosemgrep: forbid-try-except
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"[Main] {e}")
        return 1

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, token.cancel)

    replayer = LogReplayer(settings.input_file, settings.options)
    match await replayer.start(token, _print_line):
        case Ok(stats):
            logger.info(f"[Main] Replay finished: {stats.lines_emitted} line(s) in {stats.passes} pass(es)")
            return 0
        case Error(err):
            logger.error(f"[Main] Replay failed: {err}")
            return 1


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
