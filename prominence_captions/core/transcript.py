"""Transcript state: what is on screen right now.

WHY: The display needs two very different kinds of words. Finalized
words are scored once and must stay put, or the captions visibly jump.
Interim words are a moving guess the recognizer keeps rewriting. Keeping
them in separate lists makes each lifecycle trivial.

HOW: finalized is a bounded list that only grows by batch append and
shrinks from the front; interim is replaced wholesale.

RULES:
- append_final() then trims to max_words, oldest first (pure FIFO)
- len(finalized) <= max_words after every append
- replace_interim() swaps the whole list; an empty list clears it
- Stored ScoredWord values are frozen; nothing here edits them
- words() returns finalized ++ interim as a new list
"""

from __future__ import annotations

from typing import Iterable, List

from prominence_captions.core.ir import ScoredWord

DEFAULT_MAX_WORDS = 20


class TranscriptState:
    """Finalized and interim caption words for one session."""

    def __init__(self, max_words: int = DEFAULT_MAX_WORDS) -> None:
        if max_words < 1:
            raise ValueError("max_words must be at least 1, got {}".format(max_words))
        self._max_words = max_words
        self._finalized: List[ScoredWord] = []
        self._interim: List[ScoredWord] = []

    @property
    def max_words(self) -> int:
        return self._max_words

    @property
    def finalized(self) -> List[ScoredWord]:
        return list(self._finalized)

    @property
    def interim(self) -> List[ScoredWord]:
        return list(self._interim)

    def append_final(self, words: Iterable[ScoredWord]) -> int:
        """Append a batch of final words and evict the oldest overflow.

        Returns:
            Number of words evicted from the front.
        """
        self._finalized.extend(words)
        overflow = len(self._finalized) - self._max_words
        if overflow > 0:
            del self._finalized[:overflow]
            return overflow
        return 0

    def replace_interim(self, words: Iterable[ScoredWord]) -> None:
        self._interim = list(words)

    def clear_interim(self) -> None:
        self._interim = []

    def clear(self) -> None:
        self._finalized = []
        self._interim = []

    def words(self) -> List[ScoredWord]:
        return self._finalized + self._interim

    def __len__(self) -> int:
        return len(self._finalized) + len(self._interim)
