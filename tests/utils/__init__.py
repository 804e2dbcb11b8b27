"""Shared test utilities for unit and integration tests."""

from tests.utils.clock import FakeClock
from tests.utils.logs import BASE_TIME, log_line, write_log
from tests.utils.result_assertions import assert_error, assert_ok

__all__ = ["BASE_TIME", "FakeClock", "assert_error", "assert_ok", "log_line", "write_log"]
