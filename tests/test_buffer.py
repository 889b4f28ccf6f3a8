"""Tests for the time-windowed prominence event buffer."""

from __future__ import annotations

import pytest

from prominence_captions.core.buffer import ProminenceBuffer
from prominence_captions.core.ir import EventFeatures, ProminenceEvent


def _event(ts: float, score: float = 0.5) -> ProminenceEvent:
    return ProminenceEvent(timestamp_ms=ts, score=score, features=EventFeatures(energy=0.1))


class TestPush:
    def test_appends_in_arrival_order(self):
        buf = ProminenceBuffer()
        buf.push(_event(100))
        buf.push(_event(300))
        assert [e.timestamp_ms for e in buf] == [100, 300]

    def test_out_of_order_timestamps_stored_as_is(self):
        buf = ProminenceBuffer()
        buf.push(_event(500))
        buf.push(_event(200))
        assert [e.timestamp_ms for e in buf] == [500, 200]

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            ProminenceBuffer(window_ms=0)


class TestPrune:
    def test_removes_events_at_or_beyond_window(self):
        buf = ProminenceBuffer(window_ms=3000)
        buf.push(_event(0))
        buf.push(_event(1))
        buf.push(_event(2500))
        removed = buf.prune(3000)
        assert removed == 1
        assert [e.timestamp_ms for e in buf] == [1, 2500]

    def test_nothing_to_prune(self):
        buf = ProminenceBuffer(window_ms=3000)
        buf.push(_event(1000))
        assert buf.prune(1500) == 0
        assert len(buf) == 1

    def test_prune_on_empty_buffer(self):
        assert ProminenceBuffer().prune(10_000) == 0


class TestQueryNear:
    def test_strict_tolerance(self):
        buf = ProminenceBuffer()
        for ts in (100, 400, 700):
            buf.push(_event(ts))
        # 100 and 700 are exactly 300 away from 400: excluded
        assert [e.timestamp_ms for e in buf.query_near(400, 300)] == [400]

    def test_preserves_original_order(self):
        buf = ProminenceBuffer()
        for ts in (700, 100, 400):
            buf.push(_event(ts))
        assert [e.timestamp_ms for e in buf.query_near(400, 1000)] == [700, 100, 400]

    def test_no_matches(self):
        buf = ProminenceBuffer()
        buf.push(_event(100))
        assert buf.query_near(5000, 100) == []


class TestClear:
    def test_clear_empties_buffer(self):
        buf = ProminenceBuffer()
        buf.push(_event(1))
        buf.clear()
        assert len(buf) == 0
        assert list(buf) == []
