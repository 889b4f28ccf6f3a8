"""Injectable monotonic clocks.

WHY: Alignment math depends on "now". Reading the wall clock inside the
handlers makes every test timing-dependent. Handlers read time through a
Clock instead, so tests can pin it.

HOW: A Clock is any zero-argument callable returning float milliseconds.
MonotonicClock wraps time.monotonic(); ManualClock is set explicitly by
tests and by the CLI's script replay.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


class MonotonicClock:
    """Milliseconds from time.monotonic(); never goes backwards."""

    def __call__(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def set(self, now_ms: float) -> None:
        self.now_ms = float(now_ms)

    def advance(self, delta_ms: float) -> float:
        self.now_ms += delta_ms
        return self.now_ms
