"""Data model shared by every stage of the caption pipeline.

WHY: The prominence oracle, the recognizer, the alignment engine and the
renderers each speak about the same few things: an acoustic event, a
scored word, a pair of size thresholds. A single set of typed values
keeps the stages decoupled: the aligner copies scores out of events into
new words, it never hands out references into the buffer.

HOW: Frozen dataclasses for values that must not change after creation
(events, scored words, thresholds, render words) and a plain dataclass
for SessionSettings, the one value the session owns and rewrites.

RULES:
- All times are float milliseconds on the session's monotonic clock
- Scores are floats in [0, 1]
- A finalized ScoredWord is never mutated or recomputed (frozen)
- SensitivityThresholds enforces 0 <= small_max <= normal_max <= 1
- SizeLevel values are the CSS-friendly strings "small"/"normal"/"large"
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


class SizeLevel(str, enum.Enum):
    """Discrete display tiers a renderer knows how to draw.

    Inherits from str so values serialize cleanly to JSON and CSS class
    names (``size-large``).
    """

    SMALL = "small"
    NORMAL = "normal"
    LARGE = "large"


@dataclass(frozen=True)
class EventFeatures:
    """Acoustic features attached to a prominence event.

    The oracle is a black box; these values are carried for weighting
    (energy) and debugging (the rest), never recomputed here.
    """

    energy: float = 0.0
    spectral_flux: float = 0.0
    high_freq_energy: float = 0.0
    mfcc_delta: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> EventFeatures:
        """Parse the oracle's camelCase feature dict; missing keys read as 0.

        Raises:
            TypeError: If data is present but not a mapping.
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError("features must be a mapping, got {}".format(type(data).__name__))
        return cls(
            energy=float(data.get("energy") or 0.0),
            spectral_flux=float(data.get("spectralFlux") or 0.0),
            high_freq_energy=float(data.get("highFreqEnergy") or 0.0),
            mfcc_delta=float(data.get("mfccDelta") or 0.0),
        )


@dataclass(frozen=True)
class ProminenceEvent:
    """One syllable-like stress detection, stamped on the session clock.

    RULES:
    - timestamp_ms is the arrival time on the session clock, not the
      oracle's own clock (the two drift)
    - score is the oracle's fusion score in [0, 1]
    - is_calibration marks events emitted during noise-floor calibration;
      the session discards them
    """

    timestamp_ms: float
    score: float
    features: EventFeatures = field(default_factory=EventFeatures)
    is_calibration: bool = False

    @classmethod
    def from_oracle_dict(cls, data: Dict[str, Any], timestamp_ms: float) -> ProminenceEvent:
        """Build an event from the oracle callback payload.

        WHY: The oracle reports ``{timestamp, fusionScore, features}`` on
        its own clock. The pipeline needs the score and features, stamped
        with the time the session received them.

        HOW: Reads fusionScore (falling back to score) and the features
        dict; the oracle's own timestamp is ignored in favour of
        timestamp_ms.

        Raises:
            KeyError: If neither fusionScore nor score is present.
            TypeError: If data or its features are not mappings.
        """
        if not isinstance(data, Mapping):
            raise TypeError("payload must be a mapping, got {}".format(type(data).__name__))
        raw_score = data["fusionScore"] if "fusionScore" in data else data["score"]
        return cls(
            timestamp_ms=timestamp_ms,
            score=float(raw_score),
            features=EventFeatures.from_dict(data.get("features")),
            is_calibration=bool(data.get("calibration", False)),
        )


@dataclass(frozen=True)
class ScoredWord:
    """A displayable word with its prominence score.

    Frozen: once the aligner emits a final word, neither its text nor
    its score can change. Interim words are replaced, never edited.
    """

    text: str
    prominence_score: float
    is_interim: bool = False


@dataclass(frozen=True)
class SensitivityThresholds:
    """Upper bounds of the small and normal tiers.

    Raises:
        ValueError: If the invariant 0 <= small_max <= normal_max <= 1
            does not hold.
    """

    small_max: float = 0.35
    normal_max: float = 0.65

    def __post_init__(self) -> None:
        if not 0.0 <= self.small_max <= self.normal_max <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= small_max <= normal_max <= 1, "
                "got small_max={}, normal_max={}".format(self.small_max, self.normal_max)
            )


@dataclass(frozen=True)
class CalibrationResult:
    """Statistics derived from one voice-range calibration run.

    thresholds are the nearest-rank 25th/75th percentiles; the observed
    extremes and median are kept for reference and status display.
    """

    thresholds: SensitivityThresholds
    observed_min: float
    observed_max: float
    median: float
    count: int


@dataclass(frozen=True)
class RenderWord:
    """What a renderer receives for each visible word."""

    text: str
    size_level: SizeLevel
    is_interim: bool = False


@dataclass
class SessionSettings:
    """Tunables owned by a single CaptionSession.

    RULES:
    - thresholds is replaced wholesale by its writers (manual
      sensitivity, voice calibration, defaults); last writer wins
    - default_thresholds is the configured pair the sensitivity control
      scales; writers of thresholds never touch it
    - buffer_window_ms doubles as the lookback window, capped at
      lookback_cap_ms
    """

    language: str = "en-US"
    base_size: int = 24
    buffer_window_ms: float = 3000.0
    lookback_cap_ms: float = 2000.0
    max_final_words: int = 20
    thresholds: SensitivityThresholds = field(default_factory=SensitivityThresholds)
    default_thresholds: SensitivityThresholds = field(default_factory=SensitivityThresholds)
