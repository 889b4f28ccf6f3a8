"""Prominence oracle interface, detection gate, and a replaying oracle.

WHY: The acoustic front end (syllable nuclei, energy, spectral flux) is
an opaque scorer. The caption pipeline only needs its output: a stream
of ``{timestamp, fusionScore, features}`` payloads, plus notice of when
the oracle is busy measuring the noise floor. An interface keeps the
session ignorant of how the scores are produced.

HOW: ProminenceOracle is an ABC with async start/stop and a
start_calibration() trigger. DetectionGate holds the filtering every
oracle applies before emitting (score threshold, minimum syllable
spacing, energy floor, silence while calibrating) so implementations
share one definition. ReplayOracle feeds recorded raw detections through
the gate; the CLI and tests use it in place of a microphone.

RULES:
- start() raises InputUnavailableError when audio input cannot be opened
- start() begins with a noise-floor calibration of
  calibration_duration_ms
- Nothing is emitted while calibrating
- A detection passes only if score > prominence_threshold,
  now - last_emitted > min_syllable_dist_ms, and
  energy > min_energy_threshold or spectral_flux > 0.1
- Payload keys are camelCase, exactly as the session parses them
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from prominence_captions.errors import InputUnavailableError

logger = logging.getLogger(__name__)

# Spectral flux alone is enough to count as voiced above this level
SPECTRAL_FLUX_FLOOR = 0.1

ProminenceCallback = Callable[[Dict[str, Any]], None]
CalibrationCallback = Callable[[], None]


def _ignore(*_args) -> None:
    return None


@dataclass
class OracleConfig:
    """Tuning for an oracle's detection gate and calibration."""

    sample_rate: int = 48000
    prominence_threshold: float = 0.35
    min_syllable_dist_ms: float = 200.0
    min_energy_threshold: float = 0.001
    calibration_duration_ms: float = 2000.0


@dataclass
class RawDetection:
    """One candidate syllable from the acoustic front end, before gating."""

    timestamp_ms: float
    fusion_score: float
    energy: float = 0.0
    spectral_flux: float = 0.0
    high_freq_energy: float = 0.0
    mfcc_delta: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp_ms,
            "fusionScore": self.fusion_score,
            "features": {
                "energy": self.energy,
                "spectralFlux": self.spectral_flux,
                "highFreqEnergy": self.high_freq_energy,
                "mfccDelta": self.mfcc_delta,
            },
        }


class DetectionGate:
    """Decides which raw detections become prominence events."""

    def __init__(self, config: Optional[OracleConfig] = None) -> None:
        self.config = config or OracleConfig()
        self._last_emitted_ms = 0.0

    def accept(self, detection: RawDetection, now_ms: float, calibrating: bool = False) -> bool:
        if calibrating:
            return False

        has_energy = (
            detection.energy > self.config.min_energy_threshold
            or detection.spectral_flux > SPECTRAL_FLUX_FLOOR
        )
        passed_threshold = detection.fusion_score > self.config.prominence_threshold
        passed_timing = now_ms - self._last_emitted_ms > self.config.min_syllable_dist_ms

        if passed_threshold and passed_timing and has_energy:
            self._last_emitted_ms = now_ms
            return True
        return False

    def reset(self) -> None:
        self._last_emitted_ms = 0.0


class ProminenceOracle(ABC):
    """Abstract source of prominence events.

    To add a new oracle:
    1. Subclass ProminenceOracle
    2. Implement name, start(), stop() and start_calibration()
    3. Gate candidates with a DetectionGate and call self._emit_prominence
    """

    def __init__(self, config: Optional[OracleConfig] = None) -> None:
        self.config = config or OracleConfig()
        self._on_prominence: ProminenceCallback = _ignore
        self._on_calibration_start: CalibrationCallback = _ignore
        self._on_calibration_end: CalibrationCallback = _ignore
        self._running = False
        self._calibrating = False

    def set_callbacks(
        self,
        on_prominence: Optional[ProminenceCallback] = None,
        on_calibration_start: Optional[CalibrationCallback] = None,
        on_calibration_end: Optional[CalibrationCallback] = None,
    ) -> None:
        self._on_prominence = on_prominence or _ignore
        self._on_calibration_start = on_calibration_start or _ignore
        self._on_calibration_end = on_calibration_end or _ignore

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_calibrating(self) -> bool:
        return self._calibrating

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable oracle name."""

    @abstractmethod
    async def start(self) -> None:
        """Open audio input and begin emitting events.

        Raises:
            InputUnavailableError: If audio input cannot be opened.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop emitting; safe to call when not running."""

    @abstractmethod
    def start_calibration(self) -> None:
        """Begin a noise-floor calibration."""

    def _emit_prominence(self, payload: Dict[str, Any]) -> None:
        self._on_prominence(payload)

    def _begin_calibration(self) -> None:
        self._calibrating = True
        logger.info("%s: noise-floor calibration started", self.name)
        self._on_calibration_start()

    def _end_calibration(self) -> None:
        self._calibrating = False
        logger.info("%s: noise-floor calibration finished", self.name)
        self._on_calibration_end()


class ReplayOracle(ProminenceOracle):
    """Replays recorded raw detections through the detection gate.

    Detection timestamps drive the calibration timer: calibration ends on
    the first detection at or after calibration start + duration. Call
    finish_calibration() to end it explicitly (e.g. at end of input).
    """

    def __init__(
        self,
        detections: Iterable[RawDetection] = (),
        config: Optional[OracleConfig] = None,
        available: bool = True,
    ) -> None:
        super().__init__(config)
        self._pending: List[RawDetection] = list(detections)
        self._gate = DetectionGate(self.config)
        self._available = available
        self._calibration_started_ms: Optional[float] = None

    @property
    def name(self) -> str:
        return "Replay oracle"

    async def start(self) -> None:
        if not self._available:
            raise InputUnavailableError("oracle", "no recorded detections available")
        self._running = True
        self._gate.reset()
        self.start_calibration()

    async def stop(self) -> None:
        self._running = False
        self._calibrating = False
        self._calibration_started_ms = None

    def start_calibration(self) -> None:
        self._calibration_started_ms = None
        self._begin_calibration()

    def finish_calibration(self) -> None:
        if self._calibrating:
            self._calibration_started_ms = None
            self._end_calibration()

    def feed(self, detection: RawDetection) -> bool:
        """Offer one detection; returns True if it was emitted."""
        if not self._running:
            return False

        if self._calibrating:
            if self._calibration_started_ms is None:
                self._calibration_started_ms = detection.timestamp_ms
            elapsed = detection.timestamp_ms - self._calibration_started_ms
            if elapsed < self.config.calibration_duration_ms:
                return False
            self.finish_calibration()

        if not self._gate.accept(detection, detection.timestamp_ms, calibrating=self._calibrating):
            return False
        self._emit_prominence(detection.to_payload())
        return True

    def replay(self) -> int:
        """Feed every pending detection in order; returns the emitted count."""
        pending, self._pending = self._pending, []
        return sum(1 for detection in pending if self.feed(detection))
