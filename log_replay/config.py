"""
Replay configuration.

Options are validated once with pydantic and are immutable for the
lifetime of a session. Settings can be loaded from the environment
(optionally seeded from ``.env.local``):

Environment Variables:
    INPUT_FILE: Log file to replay (required)
    FILTER_REGEX: Inclusion pattern (default: .*)
    TIME_REGEX: Pattern with exactly one capture group around the timestamp
    TIME_FORMAT: Timestamp descriptor (default: YYYY-MM-DD HH:mm:ss.SSS)
    LOOP: Restart from the beginning at end of file (default: false)
    BATCH_WINDOW_MS: Lines this close to a batch's first line are emitted
        together (default: 1000)
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .replay.batch import DEFAULT_BATCH_WINDOW_MS
from .replay.line_filter import DEFAULT_FILTER_REGEX
from .replay.time_format import DEFAULT_TIME_FORMAT
from .replay.timestamps import DEFAULT_TIME_REGEX
from .result import Error, Ok, Result


DEFAULT_ENV_FILE = ".env.local"


class ReplayerOptions(BaseModel):
    """Per-session replay options."""

    model_config = ConfigDict(frozen=True)

    filter_regex: str = DEFAULT_FILTER_REGEX
    time_regex: str = DEFAULT_TIME_REGEX
    time_format: str = DEFAULT_TIME_FORMAT
    loop: bool = False
    batch_window_ms: int = Field(default=DEFAULT_BATCH_WINDOW_MS, gt=0)

    def compile_filter(self) -> Result[re.Pattern[str], ConfigurationError]:
        return _compile("filter", self.filter_regex)

    def compile_time_regex(self) -> Result[re.Pattern[str], ConfigurationError]:
        compiled = _compile("time", self.time_regex)
        match compiled:
            case Ok(pattern) if pattern.groups != 1:
                return Error(
                    ConfigurationError(
                        f"Time regex must have exactly one capture group, "
                        f"got {pattern.groups}: {self.time_regex!r}"
                    )
                )
        return compiled


class ReplaySettings(BaseModel):
    """Input file plus replay options."""

    model_config = ConfigDict(frozen=True)

    input_file: Path
    options: ReplayerOptions = Field(default_factory=ReplayerOptions)


def _compile(kind: str, pattern: str) -> Result[re.Pattern[str], ConfigurationError]:
    # Reason: re.error is the only signal for an invalid pattern
    try:  # nosemgrep: forbid-try-except
        return Ok(re.compile(pattern))
    except re.error as e:
        return Error(ConfigurationError(f"Invalid {kind} regex: {pattern!r}, err: {e}"))


# environment variable -> ReplayerOptions field
_OPTION_ENV_VARS: dict[str, str] = {
    "FILTER_REGEX": "filter_regex",
    "TIME_REGEX": "time_regex",
    "TIME_FORMAT": "time_format",
    "LOOP": "loop",
    "BATCH_WINDOW_MS": "batch_window_ms",
}


def load_settings(
    environ: Mapping[str, str] | None = None,
    env_file: str | None = DEFAULT_ENV_FILE,
) -> ReplaySettings:
    """
    Build ReplaySettings from environment variables.

    Args:
        environ: Variables to read (default: os.environ after loading env_file)
        env_file: dotenv file loaded into os.environ first, without overriding
            variables that are already set; None to skip

    Raises:
        ConfigurationError: If INPUT_FILE is missing or a value is invalid
    """
    if environ is None:
        if env_file is not None:
            load_dotenv(env_file)
        environ = os.environ

    input_file = environ.get("INPUT_FILE")
    if not input_file:
        msg = "INPUT_FILE is not set"
        raise ConfigurationError(msg)

    options = {field: environ[var] for var, field in _OPTION_ENV_VARS.items() if environ.get(var)}

    # Reason: pydantic reports all invalid fields at once, surface them as one configuration error
    try:  # nosemgrep: forbid-try-except
        settings = ReplaySettings.model_validate({"input_file": input_file, "options": options})
    except ValidationError as e:
        msg = f"Invalid replay settings: {e}"
        raise ConfigurationError(msg) from e

    logger.debug(f"[Config] Loaded settings: {settings!r}")
    return settings
