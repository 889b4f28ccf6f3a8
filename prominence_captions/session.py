"""CaptionSession: the single owner of a captioning session's state.

WHY: Prominence events and recognizer results arrive independently and
in any interleaving. Every piece of mutable state (event buffer,
transcript, calibration samples, thresholds, demo progress) lives in one
object whose handlers run to completion one at a time, so no handler
ever observes another half-done.

HOW: Synchronous handlers, one per external event. Each handler reads
"now" from the injected clock, mutates state, and, when the visible
words may have changed, pushes a fresh render list to the listener.
Async lifecycle (starting inputs, restarts, timers) lives in
LiveCaptioner; this class never awaits.

RULES:
- Events are stamped with the session clock on arrival
- The buffer is pruned only when a prominence event arrives
- Events are discarded while the oracle measures the noise floor, and
  whenever they are tagged as calibration output
- Final text is aligned once, at arrival, and appended; interim text
  replaces the interim list, empty interim clears it
- Render list = finalized ++ interim, classified with current thresholds
- After stop(), every handler is a no-op and nothing is flushed
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from prominence_captions.config import normalize_language
from prominence_captions.core.aligner import ProminenceAligner, score_interim
from prominence_captions.core.buffer import ProminenceBuffer
from prominence_captions.core.calibration import VoiceCalibration, thresholds_for_sensitivity
from prominence_captions.core.classifier import classify_words, font_sizes_for_base
from prominence_captions.core.clock import Clock, MonotonicClock
from prominence_captions.core.ir import (
    CalibrationResult,
    ProminenceEvent,
    RenderWord,
    ScoredWord,
    SensitivityThresholds,
    SessionSettings,
    SizeLevel,
)
from prominence_captions.core.tokenizer import tokenize_words
from prominence_captions.core.transcript import TranscriptState
from prominence_captions.demo import DEMO_RESET_DELAY_MS, DEMO_SEQUENCE, demo_words
from prominence_captions.errors import CalibrationInsufficientDataError
from prominence_captions.recognizer.base import RecognitionResult

logger = logging.getLogger(__name__)

INITIALIZING_MESSAGE = "Initializing..."
READY_MESSAGE = "Ready - Speak now"
NOISE_CALIBRATING_MESSAGE = "Calibrating... Please stay quiet"
VOICE_CALIBRATING_MESSAGE = "Voice Calibrating - Read the phrase!"
INSUFFICIENT_DATA_MESSAGE = "Not enough data - try again (need 5+ events)"
CALIBRATED_MESSAGE = "Calibrated! Range: {:.2f} - {:.2f}"


class StatusKind(str, enum.Enum):
    """Category of the status line, used for styling."""

    PROCESSING = "processing"
    READY = "ready"
    CALIBRATING = "calibrating"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    message: str
    kind: StatusKind


RenderListener = Callable[[List[RenderWord]], None]
StatusListener = Callable[[Status], None]


class CaptionSession:
    """State and event handlers for one live captioning session.

    Args:
        settings: Tunables; a default SessionSettings when omitted.
        clock: Source of "now" in ms; MonotonicClock when omitted.
        listener: Receives the full render list after every change.
        status_listener: Receives every status change.
    """

    def __init__(
        self,
        settings: Optional[SessionSettings] = None,
        clock: Optional[Clock] = None,
        listener: Optional[RenderListener] = None,
        status_listener: Optional[StatusListener] = None,
    ) -> None:
        self.settings = settings or SessionSettings()
        self._clock: Clock = clock or MonotonicClock()
        self._listener = listener
        self._status_listener = status_listener

        self.buffer = ProminenceBuffer(self.settings.buffer_window_ms)
        self.aligner = ProminenceAligner(self.buffer, self.settings.lookback_cap_ms)
        self.transcript = TranscriptState(self.settings.max_final_words)
        self.voice_calibration = VoiceCalibration()

        self.noise_calibrating = False
        self.total_events = 0
        self.status = Status(INITIALIZING_MESSAGE, StatusKind.PROCESSING)

        self.demo_mode = False
        self._demo_iter: Optional[Iterator[ScoredWord]] = None
        self._demo_shown = 0
        self._demo_reset_due_ms: Optional[float] = None

        self._stopped = False

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def now_ms(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Oracle
    # ------------------------------------------------------------------

    def on_prominence(self, payload: Dict[str, Any]) -> Optional[ProminenceEvent]:
        """Store one oracle event.

        Returns:
            The stored event, or None if it was discarded.
        """
        if self._stopped:
            return None
        if self.noise_calibrating:
            logger.debug("Discarding prominence event during noise calibration")
            return None

        now = self._clock()
        try:
            event = ProminenceEvent.from_oracle_dict(payload, now)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Dropping malformed prominence event %r: %s", payload, exc)
            return None
        if event.is_calibration:
            logger.debug("Discarding calibration-tagged prominence event")
            return None

        self.total_events += 1
        self.buffer.push(event)
        self.buffer.prune(now)
        self.voice_calibration.add_sample(event.score)

        if self.demo_mode:
            self.demo_tick()
        return event

    def on_noise_calibration_start(self) -> None:
        if self._stopped:
            return
        self.noise_calibrating = True
        self.set_status(NOISE_CALIBRATING_MESSAGE, StatusKind.CALIBRATING)

    def on_noise_calibration_end(self) -> None:
        if self._stopped:
            return
        self.noise_calibrating = False
        self.set_status(READY_MESSAGE, StatusKind.READY)

    # ------------------------------------------------------------------
    # Recognizer
    # ------------------------------------------------------------------

    def on_recognition_result(self, result: RecognitionResult) -> None:
        """Align final text against the buffer and refresh interim words."""
        if self._stopped:
            return

        final_text, interim_text = result.partition()
        now = self._clock()

        if final_text:
            scored = self.aligner.align(tokenize_words(final_text), now)
            evicted = self.transcript.append_final(scored)
            logger.debug(
                "Finalized %d word(s) at %.0f ms, evicted %d",
                len(scored), now, evicted,
            )

        if interim_text:
            self.transcript.replace_interim(score_interim(tokenize_words(interim_text)))
        else:
            self.transcript.clear_interim()

        self._emit()

    # ------------------------------------------------------------------
    # Calibration and settings
    # ------------------------------------------------------------------

    def start_voice_calibration(self) -> None:
        if self._stopped:
            return
        self.voice_calibration.start()
        self.set_status(VOICE_CALIBRATING_MESSAGE, StatusKind.CALIBRATING)

    def finish_voice_calibration(self) -> Optional[CalibrationResult]:
        """Apply the collected samples as new thresholds.

        Returns:
            The calibration result, or None when there was not enough data
            (thresholds are left untouched).
        """
        if self._stopped:
            return None
        try:
            result = self.voice_calibration.finish()
        except CalibrationInsufficientDataError:
            self.set_status(INSUFFICIENT_DATA_MESSAGE, StatusKind.ERROR)
            return None

        self.settings.thresholds = result.thresholds
        logger.info(
            "New thresholds: small_max=%.3f normal_max=%.3f",
            result.thresholds.small_max, result.thresholds.normal_max,
        )
        self.set_status(
            CALIBRATED_MESSAGE.format(result.observed_min, result.observed_max),
            StatusKind.READY,
        )
        self._emit()
        return result

    def set_sensitivity(self, value: float) -> SensitivityThresholds:
        """Replace thresholds from the 0–100 sensitivity control.

        Scales the configured default thresholds, not whatever a previous
        calibration left behind.

        Raises:
            ValueError: If value is outside [0, 100].
        """
        thresholds = thresholds_for_sensitivity(value, self.settings.default_thresholds)
        self.set_thresholds(thresholds)
        return thresholds

    def set_thresholds(self, thresholds: SensitivityThresholds) -> None:
        self.settings.thresholds = thresholds
        self._emit()

    def set_base_size(self, base_size: int) -> Dict[SizeLevel, int]:
        """Change the base font size; returns the new per-tier pixel sizes.

        Raises:
            ValueError: If base_size is not positive.
        """
        sizes = font_sizes_for_base(base_size)
        self.settings.base_size = base_size
        self._emit()
        return sizes

    def set_language(self, code: str) -> str:
        self.settings.language = normalize_language(code)
        logger.info("Language set to %s", self.settings.language)
        return self.settings.language

    def font_sizes(self) -> Dict[SizeLevel, int]:
        return font_sizes_for_base(self.settings.base_size)

    # ------------------------------------------------------------------
    # Demo mode
    # ------------------------------------------------------------------

    def enable_demo_mode(self) -> None:
        if self.demo_mode:
            return
        self.demo_mode = True
        self._restart_demo()
        logger.info("Demo mode enabled")

    def demo_tick(self) -> Optional[ScoredWord]:
        """Reveal the next demo word.

        Returns:
            The word shown, or None while the finished sequence is held on
            screen before the reset.
        """
        if self._stopped or not self.demo_mode:
            return None
        self.poll_demo_reset()
        if self._demo_reset_due_ms is not None or self._demo_iter is None:
            return None

        word = next(self._demo_iter, None)
        if word is None:
            return None
        self._demo_shown += 1
        self.transcript.append_final([word])
        if self._demo_shown >= len(DEMO_SEQUENCE):
            self._demo_reset_due_ms = self._clock() + DEMO_RESET_DELAY_MS
        self._emit()
        return word

    def poll_demo_reset(self) -> bool:
        """Clear the display and restart the sequence once the hold expires."""
        if self._demo_reset_due_ms is None or self._clock() < self._demo_reset_due_ms:
            return False
        self.transcript.clear()
        self._restart_demo()
        self._emit()
        return True

    def _restart_demo(self) -> None:
        self._demo_iter = demo_words()
        self._demo_shown = 0
        self._demo_reset_due_ms = None

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render_words(self) -> List[RenderWord]:
        return classify_words(self.transcript.words(), self.settings.thresholds)

    def set_status(self, message: str, kind: StatusKind) -> None:
        self.status = Status(message, kind)
        logger.info("Status [%s]: %s", kind.value, message)
        if self._status_listener is not None:
            self._status_listener(self.status)

    def stop(self) -> None:
        """Stop consuming events and discard all state without flushing."""
        self._stopped = True
        self.buffer.clear()
        self.transcript.clear()
        self.voice_calibration.cancel()
        self.demo_mode = False
        self._demo_iter = None
        self._demo_reset_due_ms = None

    def _emit(self) -> None:
        if self._listener is not None:
            self._listener(self.render_words())
