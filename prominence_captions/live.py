"""LiveCaptioner: async lifecycle around a CaptionSession.

WHY: Starting the oracle and the recognizer involves I/O that can fail
(no microphone, no recognition engine, unreachable proxy). Recognizers
also stop on their own after silence or hiccups. None of that should
leak into the synchronous session handlers, and none of it should ever
leave the user with a blank screen.

HOW: LiveCaptioner wires the inputs' callbacks to the session, awaits
their start-up, and reacts to failures by degrading: an unavailable
oracle leaves captions at the no-evidence tier, an unavailable
recognizer switches the session to demo mode. A timer task drives the
demo when there are no prominence events to drive it.

RULES:
- Oracle start failure → error status, captioning continues
- Recognizer start failure or "network" error → demo mode
- "no-speech" / "aborted" → recognizer restarted, not surfaced
- Recognizer end while recognizing and not in demo mode → restart
- stop() stops the session first, then both inputs; nothing is flushed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from prominence_captions.errors import InputUnavailableError, TransientRecognitionError
from prominence_captions.oracle import ProminenceOracle
from prominence_captions.recognizer.base import SpeechRecognizer
from prominence_captions.session import READY_MESSAGE, CaptionSession, StatusKind

logger = logging.getLogger(__name__)

DEMO_STATUS_MESSAGE = "Speech API unavailable - Demo Mode"
DEMO_TICK_INTERVAL_S = 0.6

NETWORK_ERROR_CODE = "network"


class LiveCaptioner:
    """Runs a CaptionSession against a live oracle and recognizer."""

    def __init__(
        self,
        session: CaptionSession,
        oracle: Optional[ProminenceOracle] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        demo_tick_interval_s: float = DEMO_TICK_INTERVAL_S,
    ) -> None:
        self.session = session
        self.oracle = oracle
        self.recognizer = recognizer
        self.demo_tick_interval_s = demo_tick_interval_s

        self.oracle_available = False
        self.recognizing = False
        self._demo_task: Optional[asyncio.Task] = None
        self._restart_tasks: Set[asyncio.Task] = set()

    async def start(self) -> None:
        await self._start_oracle()
        await self._start_recognizer()
        if (
            self.recognizing
            and not self.session.noise_calibrating
            and self.session.status.kind is not StatusKind.ERROR
        ):
            self.session.set_status(READY_MESSAGE, StatusKind.READY)

    async def _start_oracle(self) -> None:
        if self.oracle is None:
            logger.warning("No prominence oracle configured; words will not be sized")
            return

        self.oracle.set_callbacks(
            on_prominence=self.session.on_prominence,
            on_calibration_start=self.session.on_noise_calibration_start,
            on_calibration_end=self.session.on_noise_calibration_end,
        )
        try:
            await self.oracle.start()
        except InputUnavailableError as exc:
            logger.warning("Prominence oracle unavailable: %s", exc)
            self.session.set_status("Error: {}".format(exc.message), StatusKind.ERROR)
            return
        self.oracle_available = True
        logger.info("%s started", self.oracle.name)

    async def _start_recognizer(self) -> None:
        if self.recognizer is None:
            logger.warning("No speech recognizer configured")
            self._enter_demo_mode()
            return

        self.recognizer.language = self.session.settings.language
        self.recognizer.set_callbacks(
            on_result=self.session.on_recognition_result,
            on_error=self._on_recognizer_error,
            on_end=self._on_recognizer_end,
        )
        try:
            await self.recognizer.start()
        except InputUnavailableError as exc:
            logger.warning("Speech recognizer unavailable: %s", exc)
            self._enter_demo_mode()
            return
        self.recognizing = True
        logger.info("%s started (%s)", self.recognizer.name, self.recognizer.language)

    def _enter_demo_mode(self) -> None:
        self.recognizing = False
        self.session.set_status(DEMO_STATUS_MESSAGE, StatusKind.PROCESSING)
        self.session.enable_demo_mode()
        if self._demo_task is None:
            self._demo_task = asyncio.ensure_future(self._demo_loop())

    async def _demo_loop(self) -> None:
        while not self.session.is_stopped:
            await asyncio.sleep(self.demo_tick_interval_s)
            if self.oracle_available:
                # Prominence events drive the words; only the reset is timed
                self.session.poll_demo_reset()
            else:
                self.session.demo_tick()

    def _on_recognizer_error(self, code: str) -> None:
        if self.session.is_stopped:
            return
        if code == NETWORK_ERROR_CODE:
            logger.warning("Recognizer network error; switching to demo mode")
            self._enter_demo_mode()
            return
        if code in TransientRecognitionError.TRANSIENT_CODES:
            logger.debug("%s; restarting recognizer", TransientRecognitionError(code))
            self._schedule_restart()
            return
        logger.warning("Recognizer error: %s", code)

    def _on_recognizer_end(self) -> None:
        if self.recognizing and not self.session.demo_mode and not self.session.is_stopped:
            logger.debug("Recognizer ended; restarting")
            self._schedule_restart()

    def _schedule_restart(self) -> None:
        task = asyncio.ensure_future(self._restart_recognizer())
        self._restart_tasks.add(task)
        task.add_done_callback(self._restart_tasks.discard)

    async def _restart_recognizer(self) -> None:
        if self.recognizer is None or self.session.is_stopped:
            return
        try:
            await self.recognizer.start()
        except InputUnavailableError as exc:
            logger.warning("Recognizer restart failed: %s", exc)
            self._enter_demo_mode()
            return
        self.recognizing = True

    async def set_language(self, code: str) -> str:
        """Switch recognition language, restarting the recognizer if running."""
        language = self.session.set_language(code)
        if self.recognizer is None:
            return language
        self.recognizer.language = language
        if self.recognizing:
            # Cleared first so an end event fired by stop() does not restart too.
            self.recognizing = False
            await self.recognizer.stop()
            await self._restart_recognizer()
        return language

    def recalibrate(self) -> bool:
        """Ask the oracle for a fresh noise-floor calibration."""
        if self.oracle is None or not self.oracle_available:
            return False
        self.oracle.start_calibration()
        return True

    async def stop(self) -> None:
        self.recognizing = False
        self.session.stop()

        tasks = list(self._restart_tasks)
        if self._demo_task is not None:
            tasks.append(self._demo_task)
            self._demo_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self.recognizer is not None:
            try:
                await self.recognizer.close()
            except Exception:
                logger.exception("Failed to stop %s", self.recognizer.name)
        if self.oracle is not None:
            try:
                await self.oracle.stop()
            except Exception:
                logger.exception("Failed to stop %s", self.oracle.name)
        self.oracle_available = False
        logger.info("Live captioning stopped")
