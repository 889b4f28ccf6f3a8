"""Renderer registry for pluggable caption frame outputs.

WHY: The CLI and server pick an output by name. A central dict makes
adding a renderer one import and one line.

HOW: RENDERERS maps string keys to renderer *classes* (not instances).
Callers instantiate as needed: ``renderer = RENDERERS["html"](base_size=24)``.

RULES:
- Keys are snake_case identifiers (used in CLI flags)
- Values are BaseRenderer subclasses (not instances)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prominence_captions.renderers.html_spans import HTMLSpanRenderer
from prominence_captions.renderers.json_frame import JSONFrameRenderer
from prominence_captions.renderers.plain_text import PlainTextRenderer

if TYPE_CHECKING:
    from prominence_captions.renderers.base import BaseRenderer

RENDERERS: dict[str, type[BaseRenderer]] = {
    "html": HTMLSpanRenderer,
    "json": JSONFrameRenderer,
    "plain_text": PlainTextRenderer,
}
