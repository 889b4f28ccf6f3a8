"""Word tokenizer for recognized text segments.

Recognizers deliver a segment as one string; the aligner needs one
entry per displayed word. Splitting on runs of whitespace is all the
caption display needs. Punctuation stays attached to its word, exactly
as the recognizer wrote it.
"""

from __future__ import annotations

from typing import List


def tokenize_words(text: str) -> List[str]:
    """Split a segment into its maximal non-whitespace substrings.

    RULES:
    - Leading/trailing whitespace is ignored
    - Runs of any whitespace (spaces, tabs, newlines) separate words
    - Empty or whitespace-only input yields an empty list
    - Never returns empty strings
    """
    return [w for w in text.split() if w]
