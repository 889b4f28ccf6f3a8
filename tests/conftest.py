"""Shared test fixtures for the prominence_captions test suite.

WHY: Most modules need the same scaffolding: a clock the test controls,
a session wired to lists that record every frame and status change, and
a quick way to build oracle payloads.

HOW: Plain pytest fixtures. The session fixture uses default
SessionSettings (not the environment), so tests are independent of any
local .env file.

RULES:
- Every session fixture gets a fresh ManualClock starting at 0 ms
- Frames and statuses are recorded in the order they were emitted
"""

from typing import Any, Callable, Dict, List

import pytest

from prominence_captions.core.clock import ManualClock
from prominence_captions.core.ir import RenderWord, SessionSettings
from prominence_captions.session import CaptionSession, Status


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(0.0)


@pytest.fixture
def frames() -> List[List[RenderWord]]:
    return []


@pytest.fixture
def statuses() -> List[Status]:
    return []


@pytest.fixture
def session(clock, frames, statuses) -> CaptionSession:
    return CaptionSession(
        settings=SessionSettings(),
        clock=clock,
        listener=frames.append,
        status_listener=statuses.append,
    )


@pytest.fixture
def payload() -> Callable[..., Dict[str, Any]]:
    """Factory for oracle callback payloads."""

    def make(score: float, energy: float = 0.1, **extra: Any) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": 0.0,
            "fusionScore": score,
            "features": {
                "energy": energy,
                "spectralFlux": 0.05,
                "highFreqEnergy": 0.01,
                "mfccDelta": 0.02,
            },
        }
        data.update(extra)
        return data

    return make
