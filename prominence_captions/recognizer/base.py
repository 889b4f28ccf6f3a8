"""Speech recognizer interface and the result shape the session consumes.

WHY: The session must not care whether words come from a local engine,
the remote proxy server, or a scripted replay. A small interface keeps
the alignment logic independent of how recognition is done.

HOW: SpeechRecognizer is an ABC with async start/stop and three
callbacks. Every recognizer delivers RecognitionResult values: an
ordered list of (transcript, is_final) segments from one callback
invocation, which partition() splits into final and interim text.

RULES:
- Subclasses MUST implement name, start() and stop()
- start() raises InputUnavailableError when recognition cannot begin
- on_error receives the recognizer's error code ("no-speech", "aborted",
  "network", ...)
- on_end fires whenever recognition stops on its own
- partition() concatenates segments in delivery order, no separator
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RecognitionSegment:
    """One recognized span of text and whether it is final."""

    transcript: str
    is_final: bool = False


@dataclass(frozen=True)
class RecognitionResult:
    """All segments delivered by one recognizer callback invocation."""

    segments: Tuple[RecognitionSegment, ...] = ()

    @classmethod
    def of(cls, segments: Sequence[RecognitionSegment]) -> RecognitionResult:
        return cls(segments=tuple(segments))

    @classmethod
    def single(cls, transcript: str, is_final: bool) -> RecognitionResult:
        return cls(segments=(RecognitionSegment(transcript=transcript, is_final=is_final),))

    def partition(self) -> Tuple[str, str]:
        """Split into (final_text, interim_text), concatenated in order."""
        final_text = ""
        interim_text = ""
        for segment in self.segments:
            if segment.is_final:
                final_text += segment.transcript
            else:
                interim_text += segment.transcript
        return final_text, interim_text


ResultCallback = Callable[[RecognitionResult], None]
ErrorCallback = Callable[[str], None]
EndCallback = Callable[[], None]


def _ignore(*_args) -> None:
    return None


class SpeechRecognizer(ABC):
    """Abstract base for recognizers that feed a CaptionSession.

    To add a new recognizer:
    1. Subclass SpeechRecognizer
    2. Implement name, start() and stop()
    3. Call self._emit_result / _emit_error / _emit_end as events happen
    """

    def __init__(self, language: str = "en-US") -> None:
        self.language = language
        self._on_result: ResultCallback = _ignore
        self._on_error: ErrorCallback = _ignore
        self._on_end: EndCallback = _ignore
        self._running = False

    def set_callbacks(
        self,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_end: Optional[EndCallback] = None,
    ) -> None:
        self._on_result = on_result or _ignore
        self._on_error = on_error or _ignore
        self._on_end = on_end or _ignore

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable recognizer name, e.g. 'Remote recognizer'."""

    @abstractmethod
    async def start(self) -> None:
        """Begin recognition.

        Raises:
            InputUnavailableError: If recognition cannot begin.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop recognition; safe to call when not running."""

    async def close(self) -> None:
        """Stop and release any connection; defaults to stop()."""
        await self.stop()

    def _emit_result(self, result: RecognitionResult) -> None:
        self._on_result(result)

    def _emit_error(self, code: str) -> None:
        self._on_error(code)

    def _emit_end(self) -> None:
        self._on_end()
