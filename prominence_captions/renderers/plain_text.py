"""Plain text renderer for terminals and logs.

RULES:
- Words are joined with single spaces, one line per frame
- large → ``**word**``, small → ``_word_``, normal → bare word
- Interim words are wrapped in brackets after sizing: ``[**word**]``
"""

from __future__ import annotations

from typing import Sequence

from prominence_captions.core.ir import RenderWord, SizeLevel
from prominence_captions.renderers.base import BaseRenderer, RenderOutput


def _mark(word: RenderWord) -> str:
    if word.size_level is SizeLevel.LARGE:
        text = "**{}**".format(word.text)
    elif word.size_level is SizeLevel.SMALL:
        text = "_{}_".format(word.text)
    else:
        text = word.text
    if word.is_interim:
        text = "[{}]".format(text)
    return text


class PlainTextRenderer(BaseRenderer):
    """Renders a frame as one marked-up text line."""

    @property
    def name(self) -> str:
        return "Plain text"

    def render(self, words: Sequence[RenderWord]) -> RenderOutput:
        return RenderOutput(
            content=" ".join(_mark(word) for word in words),
            media_type="text/plain",
        )
