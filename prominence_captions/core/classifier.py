"""Size classifier: continuous prominence score → display tier.

The classifier is stateless. Thresholds are passed in on every call,
read from whichever writer last set them (defaults, manual sensitivity
or voice calibration), so a recalibration takes effect on the very next
render without touching stored words.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List

from prominence_captions.core.ir import (
    RenderWord,
    ScoredWord,
    SensitivityThresholds,
    SizeLevel,
)

SMALL_SIZE_RATIO = 0.67
LARGE_SIZE_RATIO = 1.33


def score_to_level(score: float, thresholds: SensitivityThresholds) -> SizeLevel:
    """Classify a score with strict upper bounds.

    RULES:
    - score < small_max → SMALL
    - score < normal_max → NORMAL
    - otherwise → LARGE
    """
    if score < thresholds.small_max:
        return SizeLevel.SMALL
    if score < thresholds.normal_max:
        return SizeLevel.NORMAL
    return SizeLevel.LARGE


def classify_words(
    words: Iterable[ScoredWord],
    thresholds: SensitivityThresholds,
) -> List[RenderWord]:
    """Turn scored words into the renderer's view of them."""
    return [
        RenderWord(
            text=w.text,
            size_level=score_to_level(w.prominence_score, thresholds),
            is_interim=w.is_interim,
        )
        for w in words
    ]


def font_sizes_for_base(base_size: int) -> Dict[SizeLevel, int]:
    """Pixel sizes for each tier, derived from the base (normal) size."""
    if base_size <= 0:
        raise ValueError("base_size must be positive, got {}".format(base_size))
    return {
        SizeLevel.SMALL: _round_half_up(base_size * SMALL_SIZE_RATIO),
        SizeLevel.NORMAL: base_size,
        SizeLevel.LARGE: _round_half_up(base_size * LARGE_SIZE_RATIO),
    }


def _round_half_up(value: float) -> int:
    # round() would send 20.5 to 20; pixel sizes round half up
    return int(math.floor(value + 0.5))
