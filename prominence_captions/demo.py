"""Demo word sequence shown when speech recognition is unavailable.

Each tick reveals the next word; emphasized words score high enough to
render large under default thresholds, the rest low enough to render
small. After the last word the display holds for DEMO_RESET_DELAY_MS,
then clears and the sequence starts again.
"""

from __future__ import annotations

from typing import Iterator, Tuple

from prominence_captions.core.ir import ScoredWord

EMPHASIZED_SCORE = 0.8
PLAIN_SCORE = 0.3
DEMO_RESET_DELAY_MS = 3000.0

DEMO_SEQUENCE: Tuple[Tuple[str, bool], ...] = (
    ("The", False),
    ("QUICK", True),
    ("brown", False),
    ("FOX", True),
    ("jumps", False),
    ("OVER", True),
    ("the", False),
    ("LAZY", True),
    ("dog", False),
)


def demo_words() -> Iterator[ScoredWord]:
    """Yield one pass over the demo sequence as final words."""
    for text, emphasized in DEMO_SEQUENCE:
        yield ScoredWord(
            text=text,
            prominence_score=EMPHASIZED_SCORE if emphasized else PLAIN_SCORE,
            is_interim=False,
        )
