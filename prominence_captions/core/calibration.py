"""Voice-range calibration and manual sensitivity thresholds.

WHY: Prominence scores depend on the speaker, the microphone and the
room. A fixed 0.35/0.65 split makes a soft-spoken user's captions all
small and a loud user's all large. Calibration samples the user's own
score distribution and puts the tier boundaries at its quartiles.

HOW: VoiceCalibration collects raw scores between start() and finish().
finish() sorts them and takes nearest-rank percentiles (plain indexing
into the sorted list, no interpolation), so results are reproducible by
hand. thresholds_for_sensitivity() is the manual alternative: one 0–100
value scales both configured default boundaries down together.

RULES:
- start() clears any previous samples
- finish() needs at least MIN_CALIBRATION_SAMPLES (5) scores, otherwise
  raises CalibrationInsufficientDataError and produces nothing
- p25 = sorted[floor(0.25 * n)], p75 = sorted[floor(0.75 * n)]
- small_max = p25, normal_max = p75 (clamped into [0, 1])
- Sensitivity v in [0, 100]: factor = 1 - (v / 100) * 0.5,
  thresholds = (base.small_max * factor, base.normal_max * factor), where
  base is the configured default pair (0.35/0.65 unless overridden)
- Noise-floor calibration is the oracle's job; see CaptionSession
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

from prominence_captions.core.ir import CalibrationResult, SensitivityThresholds
from prominence_captions.errors import CalibrationInsufficientDataError

logger = logging.getLogger(__name__)

MIN_CALIBRATION_SAMPLES = 5


def nearest_rank(sorted_values: Sequence[float], fraction: float) -> float:
    """Return sorted_values[floor(fraction * n)], clamped to the last index."""
    if not sorted_values:
        raise ValueError("nearest_rank needs at least one value")
    index = min(int(math.floor(fraction * len(sorted_values))), len(sorted_values) - 1)
    return sorted_values[index]


def compute_calibration(scores: Sequence[float]) -> CalibrationResult:
    """Derive size thresholds from a sample of raw prominence scores.

    Raises:
        CalibrationInsufficientDataError: With fewer than 5 scores.
    """
    if len(scores) < MIN_CALIBRATION_SAMPLES:
        raise CalibrationInsufficientDataError(len(scores), MIN_CALIBRATION_SAMPLES)

    ordered = sorted(scores)
    p25 = nearest_rank(ordered, 0.25)
    p75 = nearest_rank(ordered, 0.75)

    thresholds = SensitivityThresholds(
        small_max=min(max(p25, 0.0), 1.0),
        normal_max=min(max(p75, 0.0), 1.0),
    )
    return CalibrationResult(
        thresholds=thresholds,
        observed_min=ordered[0],
        observed_max=ordered[-1],
        median=ordered[len(ordered) // 2],
        count=len(ordered),
    )


def thresholds_for_sensitivity(
    value: float,
    base: Optional[SensitivityThresholds] = None,
) -> SensitivityThresholds:
    """Map the manual sensitivity control (0–100) to thresholds.

    Higher sensitivity lowers both boundaries, so more words land in the
    large tier. Sensitivity 0 returns base unchanged.

    Args:
        value: Control position, 0 to 100.
        base: Boundaries to scale; the built-in 0.35/0.65 when omitted.

    Raises:
        ValueError: If value is outside [0, 100].
    """
    if not 0 <= value <= 100:
        raise ValueError("Sensitivity must be between 0 and 100, got {}".format(value))
    if base is None:
        base = SensitivityThresholds()
    factor = 1 - (value / 100) * 0.5
    return SensitivityThresholds(
        small_max=base.small_max * factor,
        normal_max=base.normal_max * factor,
    )


class VoiceCalibration:
    """Collects prominence scores while the user reads a calibration phrase."""

    def __init__(self) -> None:
        self._active = False
        self._samples: List[float] = []

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def start(self) -> None:
        self._active = True
        self._samples = []
        logger.info("Started voice calibration")

    def add_sample(self, score: float) -> None:
        """Record a raw score; ignored unless calibration is active."""
        if self._active:
            self._samples.append(score)

    def finish(self) -> CalibrationResult:
        """Stop collecting and derive thresholds from the samples.

        The samples are discarded either way.

        Raises:
            CalibrationInsufficientDataError: With fewer than 5 samples.
        """
        self._active = False
        samples, self._samples = self._samples, []
        try:
            result = compute_calibration(samples)
        except CalibrationInsufficientDataError:
            logger.warning("Not enough calibration data: %d event(s)", len(samples))
            raise

        logger.info(
            "Calibration stats: min=%.3f max=%.3f median=%.3f range=%.3f count=%d",
            result.observed_min,
            result.observed_max,
            result.median,
            result.observed_max - result.observed_min,
            result.count,
        )
        return result

    def cancel(self) -> None:
        self._active = False
        self._samples = []
