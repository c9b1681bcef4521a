"""Clock abstraction for testable timing of operations."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Protocol for reading a monotonic timer.  Inject a fake in tests."""

    def monotonic(self) -> float: ...


class SystemClock:
    """Default clock backed by ``time.perf_counter``."""

    def monotonic(self) -> float:
        return time.perf_counter()
