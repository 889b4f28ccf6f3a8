"""Abstract base renderer and output container.

WHY: The same render list (finalized ++ interim words, each with a size
tier) is shown in a browser overlay, streamed to other tools as JSON, or
printed to a terminal. A common interface lets the CLI and server pick a
renderer by name and treat them all alike.

HOW: BaseRenderer is an ABC with a ``name`` property and a ``render()``
method. RenderOutput bundles the content with its MIME type.

RULES:
- Subclasses MUST implement ``name`` and ``render()``
- ``render()`` is pure: same words and sizes in, same content out
- An empty word list renders to an empty frame, never an error
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Sequence

from prominence_captions.core.classifier import font_sizes_for_base
from prominence_captions.core.ir import RenderWord, SizeLevel

DEFAULT_BASE_SIZE = 24


@dataclass
class RenderOutput:
    """One rendered caption frame.

    Attributes:
        content: The frame as text (HTML fragment, JSON document, line).
        media_type: MIME type for the content, e.g. ``"application/json"``.
    """

    content: str
    media_type: str


class BaseRenderer(ABC):
    """Abstract base for caption frame renderers.

    To add a new renderer:
    1. Create a new file in renderers/
    2. Subclass BaseRenderer
    3. Implement render() and name
    4. Register in RENDERERS dict in renderers/__init__.py
    """

    def __init__(self, base_size: int = DEFAULT_BASE_SIZE) -> None:
        self.font_sizes: Dict[SizeLevel, int] = font_sizes_for_base(base_size)

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable renderer name, e.g. 'HTML spans'."""

    @abstractmethod
    def render(self, words: Sequence[RenderWord]) -> RenderOutput:
        """Render the visible words as one frame."""

    def set_base_size(self, base_size: int) -> None:
        self.font_sizes = font_sizes_for_base(base_size)
