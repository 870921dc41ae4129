from __future__ import annotations

import time


class Clock:
    """Monotonic nanosecond clock anchored at construction."""

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.monotonic_ns()

    def now(self) -> int:
        return time.monotonic_ns() - self._start
