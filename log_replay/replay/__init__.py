"""
Replay engine components.

This subpackage holds the pieces the LogReplayer drives, leaf-first:
- LineFilter: regex inclusion test
- TimeFormat / TimestampExtractor: locate, parse and rewrite timestamps
- ClockMapper: log time to wall time, rebased per loop
- BatchAccumulator: coalesce lines within a proximity window
- Scheduler: wait for a batch's wall time or cancellation, then flush
"""

from .batch import Batch, BatchAccumulator, Line
from .clock import ClockMapper, ClockMapping, utc_now
from .line_filter import LineFilter
from .scheduler import CancellationToken, PendingWait, Scheduler
from .time_format import TimeFormat
from .timestamps import TimestampExtractor, TimestampMatch

__all__ = [
    # Data
    "Batch",
    "Line",
    # Components
    "BatchAccumulator",
    "ClockMapper",
    "ClockMapping",
    "LineFilter",
    "Scheduler",
    "TimeFormat",
    "TimestampExtractor",
    "TimestampMatch",
    # Cancellation
    "CancellationToken",
    "PendingWait",
    "utc_now",
]
