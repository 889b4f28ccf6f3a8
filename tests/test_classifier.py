"""Tests for the size classifier and base-size font tiers."""

from __future__ import annotations

import pytest

from prominence_captions.core.classifier import (
    classify_words,
    font_sizes_for_base,
    score_to_level,
)
from prominence_captions.core.ir import ScoredWord, SensitivityThresholds, SizeLevel

DEFAULTS = SensitivityThresholds()


class TestScoreToLevel:
    @pytest.mark.parametrize(
        "score, expected",
        [
            (0.0, SizeLevel.SMALL),
            (0.349, SizeLevel.SMALL),
            (0.35, SizeLevel.NORMAL),
            (0.5, SizeLevel.NORMAL),
            (0.65, SizeLevel.LARGE),
            (1.0, SizeLevel.LARGE),
        ],
    )
    def test_default_boundaries(self, score, expected):
        assert score_to_level(score, DEFAULTS) is expected

    def test_equal_thresholds_skip_normal(self):
        t = SensitivityThresholds(small_max=0.5, normal_max=0.5)
        assert score_to_level(0.49, t) is SizeLevel.SMALL
        assert score_to_level(0.5, t) is SizeLevel.LARGE


class TestThresholdInvariant:
    @pytest.mark.parametrize("small, normal", [(0.7, 0.3), (-0.1, 0.5), (0.2, 1.2)])
    def test_invalid_thresholds_rejected(self, small, normal):
        with pytest.raises(ValueError):
            SensitivityThresholds(small_max=small, normal_max=normal)


class TestClassifyWords:
    def test_carries_text_and_interim_flag(self):
        words = [
            ScoredWord("quiet", 0.1),
            ScoredWord("LOUD", 0.9),
            ScoredWord("pending", 0.5, is_interim=True),
        ]
        rendered = classify_words(words, DEFAULTS)
        assert [(w.text, w.size_level, w.is_interim) for w in rendered] == [
            ("quiet", SizeLevel.SMALL, False),
            ("LOUD", SizeLevel.LARGE, False),
            ("pending", SizeLevel.NORMAL, True),
        ]


class TestFontSizes:
    def test_default_base(self):
        assert font_sizes_for_base(24) == {
            SizeLevel.SMALL: 16,
            SizeLevel.NORMAL: 24,
            SizeLevel.LARGE: 32,
        }

    def test_other_base(self):
        sizes = font_sizes_for_base(30)
        assert sizes[SizeLevel.SMALL] == 20
        assert sizes[SizeLevel.LARGE] == 40

    def test_non_positive_base_rejected(self):
        with pytest.raises(ValueError):
            font_sizes_for_base(0)
