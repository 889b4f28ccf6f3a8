"""JSON frame renderer for downstream tools.

WHY: Other overlays (OBS browser sources, broadcast graphics) want the
words and their tiers as data, not markup. A stable, schema-checked
document lets them consume frames without reimplementing the pipeline.

HOW: Builds ``{"words": [...], "fontSizes": {...}}`` with camelCase
keys, validates it with jsonschema against render_frame_schema.json
(shipped as package data), and serializes it.

RULES:
- words[i] = {"text", "sizeLevel", "isInterim"} in display order
- fontSizes = {"small", "normal", "large"} pixel sizes for the base size
- Every frame is validated before it is returned
- Output is compact UTF-8 JSON (ensure_ascii=False)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import jsonschema

from prominence_captions.core.ir import RenderWord
from prominence_captions.renderers.base import BaseRenderer, RenderOutput

_SCHEMA_PATH = Path(__file__).resolve().parent / "render_frame_schema.json"

_CACHED_SCHEMA: Optional[dict] = None


def _get_schema() -> dict:
    """Load and cache the render frame JSON schema."""
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


class JSONFrameRenderer(BaseRenderer):
    """Renders a frame as a schema-validated JSON document."""

    @property
    def name(self) -> str:
        return "JSON frame"

    def build_frame(self, words: Sequence[RenderWord]) -> Dict[str, Any]:
        return {
            "words": [
                {
                    "text": word.text,
                    "sizeLevel": word.size_level.value,
                    "isInterim": word.is_interim,
                }
                for word in words
            ],
            "fontSizes": {level.value: px for level, px in self.font_sizes.items()},
        }

    def render(self, words: Sequence[RenderWord]) -> RenderOutput:
        """Build, validate and serialize one frame.

        Raises:
            jsonschema.ValidationError: If the frame does not match the
                render frame schema.
        """
        frame = self.build_frame(words)
        jsonschema.validate(instance=frame, schema=_get_schema())
        return RenderOutput(
            content=json.dumps(frame, ensure_ascii=False),
            media_type="application/json",
        )
