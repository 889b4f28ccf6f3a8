"""HTML span renderer for the caption overlay.

Each word becomes ``<span class="subtitle-word size-{level}">``, with an
extra ``interim`` class for words the recognizer may still rewrite. The
overlay stylesheet maps the size classes onto the CSS variables emitted
by ``css_variables()``.
"""

from __future__ import annotations

import html
from typing import List, Sequence

from prominence_captions.core.ir import RenderWord, SizeLevel
from prominence_captions.renderers.base import BaseRenderer, RenderOutput


class HTMLSpanRenderer(BaseRenderer):
    """Renders words as styled spans inside one container div."""

    def __init__(self, base_size: int = 24, include_style: bool = False) -> None:
        super().__init__(base_size)
        self.include_style = include_style

    @property
    def name(self) -> str:
        return "HTML spans"

    def css_variables(self) -> str:
        """``:root`` rule setting --size-small/normal/large in px."""
        declarations = " ".join(
            "--size-{}: {}px;".format(level.value, self.font_sizes[level])
            for level in (SizeLevel.SMALL, SizeLevel.NORMAL, SizeLevel.LARGE)
        )
        return ":root { " + declarations + " }"

    def render(self, words: Sequence[RenderWord]) -> RenderOutput:
        spans: List[str] = []
        for word in words:
            classes = "subtitle-word size-{}".format(word.size_level.value)
            if word.is_interim:
                classes += " interim"
            spans.append('<span class="{}">{}</span>'.format(classes, html.escape(word.text)))

        body = '<div id="subtitle_text">' + "".join(spans) + "</div>"
        if self.include_style:
            body = "<style>" + self.css_variables() + "</style>" + body
        return RenderOutput(content=body, media_type="text/html")
