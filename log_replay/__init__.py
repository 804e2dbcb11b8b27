"""
Log Replay

Replays a historical log file in real time: lines are emitted with their
original relative delays, timestamps are rewritten to the current wall
clock, and the replay can loop indefinitely.

Components:
    - LogReplayer: replay loop controller
    - ReplayerOptions / ReplaySettings: validated configuration
    - CancellationToken: cooperative shutdown shared with other subsystems
"""

from .config import ReplayerOptions, ReplaySettings, load_settings
from .errors import ConfigurationError, IOFailure, ReplayError
from .replay import CancellationToken, TimeFormat
from .replayer import LogReplayer, ReplayState, ReplayStats
from .result import Error, Ok, Result


__all__ = [
    "CancellationToken",
    "ConfigurationError",
    "Error",
    "IOFailure",
    "LogReplayer",
    "Ok",
    "ReplayError",
    "ReplayState",
    "ReplayStats",
    "ReplaySettings",
    "ReplayerOptions",
    "Result",
    "TimeFormat",
    "load_settings",
]
