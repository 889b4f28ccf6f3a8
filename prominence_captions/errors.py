"""Error taxonomy for the caption pipeline.

WHY: Callers at the edges (CLI, live captioner, proxy server) must tell
apart failures that degrade the session, failures that are retried
silently, and failures that only get reported. Typed exceptions make
those decisions explicit instead of string-matching messages.

HOW: One small hierarchy rooted at ProminenceCaptionsError. The core
raises; boundaries catch, log, and degrade.

RULES:
- None of these is fatal to the process
- InputUnavailableError → status change + demo mode
- TransientRecognitionError → recognizer restart, never surfaced
- CalibrationInsufficientDataError → status message, thresholds untouched
- MalformedMessageError → logged, message dropped, connection kept
"""

from __future__ import annotations


class ProminenceCaptionsError(Exception):
    """Base class for all pipeline errors."""


class InputUnavailableError(ProminenceCaptionsError):
    """Raised when the oracle or recognizer cannot start.

    Typical causes are a denied microphone permission, a missing
    recognition engine, or an unreachable remote recognizer.

    Attributes:
        source: Which input failed, "oracle" or "recognizer".
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__("{} unavailable: {}".format(source, message))


class TransientRecognitionError(ProminenceCaptionsError):
    """A recognizer hiccup that is recovered by restarting it.

    Attributes:
        code: Recognizer error code, e.g. "no-speech" or "aborted".
    """

    TRANSIENT_CODES = frozenset({"no-speech", "aborted"})

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__("Transient recognition error: {}".format(code))


class CalibrationInsufficientDataError(ProminenceCaptionsError):
    """Raised when voice calibration finishes with too few samples.

    Attributes:
        count: Number of samples collected.
        required: Minimum number of samples needed.
    """

    def __init__(self, count: int, required: int) -> None:
        self.count = count
        self.required = required
        super().__init__(
            "Not enough calibration data: {} event(s), need {}+".format(count, required)
        )


class MalformedMessageError(ProminenceCaptionsError):
    """Raised when a wire protocol frame cannot be decoded."""
