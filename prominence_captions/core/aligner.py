"""Alignment engine: scores recognized words against the prominence buffer.

WHY: The recognizer tells us *what* was said but not *when* each word was
spoken; the oracle tells us *when* something was stressed but not *which
word* it belonged to. By the time a segment is finalized, its prominence
events are already sitting in the buffer. This module bridges the two so
every final word gets exactly one prominence score.

HOW: Uniform back-projection. The N words of a final segment are assumed
to have been spoken evenly across a lookback window W ending at the
moment the result arrived. Each word claims the midpoint of its W/N slot,
collects buffer events within 1.5 slots of that midpoint, and averages
their scores weighted by energy × duration proxy. The duration proxy is
the gap to the next matched event (capped at 300 ms), 100 ms for the
last one, standing in for "energy integrated over the syllable".

RULES:
- W = min(buffer window, lookback cap); default cap 2000 ms
- word i center = arrival - W + (i + 0.5) * W / N
- tolerance = 1.5 * W / N, strict inequality
- No matched events → 0.2 (small tier under default thresholds)
- Zero total weight → 0.2
- Missing or zero energy counts as 0.1
- Negative gaps (out-of-order events) count as 0 ms
- Interim words always score 0.5 and are never persisted
- Zero words → empty result
"""

from __future__ import annotations

from typing import List, Sequence

from prominence_captions.core.buffer import ProminenceBuffer
from prominence_captions.core.ir import ProminenceEvent, ScoredWord
from prominence_captions.core.tokenizer import tokenize_words

# Score for a word with no prosodic evidence nearby.
NO_EVIDENCE_SCORE = 0.2

# Neutral score for interim words (midpoint of the default normal tier).
INTERIM_SCORE = 0.5

DEFAULT_LOOKBACK_CAP_MS = 2000.0
TOLERANCE_SLOTS = 1.5
MAX_DURATION_PROXY_MS = 300.0
LAST_EVENT_DURATION_MS = 100.0
DEFAULT_ENERGY = 0.1


def estimate_word_centers(num_words: int, arrival_ms: float, window_ms: float) -> List[float]:
    """Back-project each word's utterance time onto a uniform grid.

    Args:
        num_words: Number of words in the finalized segment.
        arrival_ms: When the recognizer delivered the result.
        window_ms: Lookback window W, already capped.

    Returns:
        One estimated center time per word, oldest first.
    """
    if num_words <= 0:
        return []
    slot_ms = window_ms / num_words
    start_ms = arrival_ms - window_ms
    return [start_ms + (index + 0.5) * slot_ms for index in range(num_words)]


def weighted_prominence(events: Sequence[ProminenceEvent]) -> float:
    """Energy × duration weighted mean of the events' scores.

    WHY: A loud, long syllable says more about a word's stress than a
    brief click that happened to cross the oracle's threshold.

    HOW: Single pass. For event i the duration proxy is
    min(300, next.timestamp - this.timestamp), clamped at 0, or 100 ms
    for the last event.

    RULES:
    - Empty input → NO_EVIDENCE_SCORE
    - Zero total weight → NO_EVIDENCE_SCORE
    - Result always lies within [min(scores), max(scores)]
    """
    if not events:
        return NO_EVIDENCE_SCORE

    weighted_sum = 0.0
    total_weight = 0.0
    last = len(events) - 1
    for i, event in enumerate(events):
        energy = event.features.energy or DEFAULT_ENERGY

        if i < last:
            gap_ms = events[i + 1].timestamp_ms - event.timestamp_ms
            duration_ms = max(0.0, min(MAX_DURATION_PROXY_MS, gap_ms))
        else:
            duration_ms = LAST_EVENT_DURATION_MS

        weight = energy * duration_ms
        weighted_sum += event.score * weight
        total_weight += weight

    if total_weight <= 0:
        return NO_EVIDENCE_SCORE
    return weighted_sum / total_weight


def score_interim(words: Sequence[str]) -> List[ScoredWord]:
    """Give every interim word the neutral score."""
    return [ScoredWord(text=w, prominence_score=INTERIM_SCORE, is_interim=True) for w in words]


class ProminenceAligner:
    """Scores finalized words against a ProminenceBuffer.

    The aligner only reads the buffer; pruning belongs to whoever
    pushes events.
    """

    def __init__(
        self,
        buffer: ProminenceBuffer,
        lookback_cap_ms: float = DEFAULT_LOOKBACK_CAP_MS,
    ) -> None:
        self._buffer = buffer
        self._lookback_cap_ms = lookback_cap_ms

    @property
    def window_ms(self) -> float:
        """The lookback window W used for back-projection."""
        return min(self._buffer.window_ms, self._lookback_cap_ms)

    def align(self, words: Sequence[str], arrival_ms: float) -> List[ScoredWord]:
        """Score each word of a finalized segment.

        Args:
            words: Tokens of the finalized segment, in spoken order.
            arrival_ms: When the final result arrived on the session clock.

        Returns:
            One final ScoredWord per input word, same order.
        """
        num_words = len(words)
        if num_words == 0:
            return []

        window_ms = self.window_ms
        tolerance_ms = TOLERANCE_SLOTS * (window_ms / num_words)
        centers = estimate_word_centers(num_words, arrival_ms, window_ms)

        scored: List[ScoredWord] = []
        for text, center_ms in zip(words, centers):
            nearby = self._buffer.query_near(center_ms, tolerance_ms)
            scored.append(ScoredWord(
                text=text,
                prominence_score=weighted_prominence(nearby),
                is_interim=False,
            ))
        return scored

    def align_text(self, text: str, arrival_ms: float) -> List[ScoredWord]:
        """Tokenize a finalized segment and score its words."""
        return self.align(tokenize_words(text), arrival_ms)
