"""Time-windowed store of recent prominence events.

WHY: Prominence events arrive continuously, but the recognizer only
reveals word boundaries seconds later when it finalizes a segment. The
buffer keeps just enough recent history for the aligner to look back
over, and nothing more.

HOW: A plain list in arrival order. prune() drops everything at or
beyond the retention window; query_near() is a linear scan, which is
cheap at the handful of events a 3 s window holds.

RULES:
- push() appends; out-of-order timestamps are stored as-is, never
  reordered or rejected
- prune(now) removes events with timestamp <= now - window_ms
- query_near() uses a strict |timestamp - center| < tolerance test and
  preserves original order
- The buffer never prunes itself; the event-arrival handler does
"""

from __future__ import annotations

from typing import Iterator, List

from prominence_captions.core.ir import ProminenceEvent

DEFAULT_WINDOW_MS = 3000.0


class ProminenceBuffer:
    """Retains prominence events for window_ms milliseconds."""

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS) -> None:
        if window_ms <= 0:
            raise ValueError("window_ms must be positive, got {}".format(window_ms))
        self._window_ms = float(window_ms)
        self._events: List[ProminenceEvent] = []

    @property
    def window_ms(self) -> float:
        return self._window_ms

    def push(self, event: ProminenceEvent) -> None:
        self._events.append(event)

    def prune(self, now_ms: float) -> int:
        """Drop events older than the retention window.

        Returns:
            Number of events removed.
        """
        cutoff = now_ms - self._window_ms
        kept = [e for e in self._events if e.timestamp_ms > cutoff]
        removed = len(self._events) - len(kept)
        self._events = kept
        return removed

    def query_near(self, center_ms: float, tolerance_ms: float) -> List[ProminenceEvent]:
        """Return retained events strictly within tolerance_ms of center_ms."""
        return [
            e for e in self._events
            if abs(e.timestamp_ms - center_ms) < tolerance_ms
        ]

    def clear(self) -> None:
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ProminenceEvent]:
        return iter(list(self._events))
