"""
Replay error taxonomy.

- ConfigurationError: invalid pattern or environment configuration.
  Detected at session start, never retried.
- IOFailure: the input file cannot be opened or read. Ends the session and
  is returned to the caller as ``Error(IOFailure)``.

Per-line timestamp failures are not errors: they are recovered inside the
replay loop and only show up in ReplayStats.
"""


class ReplayError(Exception):
    """Base class for failures that end a replay session."""


class ConfigurationError(ReplayError):
    """Invalid filter/timestamp pattern or settings."""


class IOFailure(ReplayError):
    """The input file could not be opened or read."""
