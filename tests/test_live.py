"""Tests for LiveCaptioner: start-up, degradation, restarts and stop.

Each scenario runs in asyncio.run with a FakeRecognizer and, where an
oracle is needed, a ReplayOracle. Restart and demo tasks are given a
short tick so a brief sleep lets them run.
"""

import asyncio

from prominence_captions.core.clock import ManualClock
from prominence_captions.errors import InputUnavailableError
from prominence_captions.live import DEMO_STATUS_MESSAGE, LiveCaptioner
from prominence_captions.oracle import RawDetection, ReplayOracle
from prominence_captions.recognizer.base import RecognitionResult, SpeechRecognizer
from prominence_captions.session import READY_MESSAGE, CaptionSession, StatusKind

TICK_S = 0.01


class FakeRecognizer(SpeechRecognizer):
    def __init__(self, fail=False):
        super().__init__()
        self.fail = fail
        self.starts = []
        self.stops = 0
        self.closed = False

    @property
    def name(self) -> str:
        return "Fake recognizer"

    async def start(self) -> None:
        if self.fail:
            raise InputUnavailableError("recognizer", "engine missing")
        self.starts.append(self.language)
        self._running = True

    async def stop(self) -> None:
        self.stops += 1
        self._running = False

    async def close(self) -> None:
        self.closed = True
        await self.stop()

    def end(self) -> None:
        self._running = False
        self._emit_end()


class EndOnStopRecognizer(FakeRecognizer):
    async def stop(self) -> None:
        await super().stop()
        self._emit_end()


class BrokenCloseRecognizer(FakeRecognizer):
    async def close(self) -> None:
        raise RuntimeError("socket already gone")


def _session():
    return CaptionSession(clock=ManualClock())


def _live(session, oracle=None, recognizer=None):
    return LiveCaptioner(session, oracle=oracle, recognizer=recognizer, demo_tick_interval_s=TICK_S)


def _settle(seconds=0.05):
    return asyncio.sleep(seconds)


class TestStart:
    def test_ready_when_recognizer_starts(self):
        session = _session()
        session.set_language("sv")
        recognizer = FakeRecognizer()

        async def scenario():
            live = _live(session, recognizer=recognizer)
            await live.start()
            assert live.recognizing
            await live.stop()

        asyncio.run(scenario())
        assert recognizer.starts == ["sv-SE"]

    def test_status_ready_after_start(self):
        session = _session()

        async def scenario():
            live = _live(session, recognizer=FakeRecognizer())
            await live.start()
            assert session.status.message == READY_MESSAGE
            await live.stop()

        asyncio.run(scenario())

    def test_oracle_calibration_holds_ready(self):
        session = _session()
        oracle = ReplayOracle()

        async def scenario():
            live = _live(session, oracle=oracle, recognizer=FakeRecognizer())
            await live.start()
            assert live.oracle_available
            assert session.noise_calibrating
            assert session.status.kind is StatusKind.CALIBRATING

            oracle.finish_calibration()
            assert session.status.kind is StatusKind.READY
            await live.stop()

        asyncio.run(scenario())

    def test_oracle_unavailable_keeps_error_status(self):
        session = _session()

        async def scenario():
            live = _live(session, oracle=ReplayOracle(available=False), recognizer=FakeRecognizer())
            await live.start()
            assert not live.oracle_available
            assert live.recognizing
            await live.stop()

        asyncio.run(scenario())
        assert session.status.message == "Error: no recorded detections available"
        assert session.status.kind is StatusKind.ERROR

    def test_recognizer_unavailable_enters_demo_mode(self):
        session = _session()

        async def scenario():
            live = _live(session, recognizer=FakeRecognizer(fail=True))
            await live.start()
            assert not live.recognizing
            assert session.demo_mode
            assert session.status.message == DEMO_STATUS_MESSAGE
            await _settle(0.1)
            shown = [w.text for w in session.transcript.finalized]
            await live.stop()
            return shown

        shown = asyncio.run(scenario())
        assert shown[:2] == ["The", "QUICK"]

    def test_no_recognizer_enters_demo_mode(self):
        session = _session()

        async def scenario():
            live = _live(session)
            await live.start()
            assert session.demo_mode
            await live.stop()

        asyncio.run(scenario())


class TestEventFlow:
    def test_oracle_and_recognizer_feed_session(self):
        session = _session()
        oracle = ReplayOracle()
        recognizer = FakeRecognizer()

        async def scenario():
            live = _live(session, oracle=oracle, recognizer=recognizer)
            await live.start()
            oracle.finish_calibration()
            assert oracle.feed(RawDetection(timestamp_ms=1000, fusion_score=0.9, energy=0.01))
            recognizer._emit_result(RecognitionResult.single("hello", True))
            words = [w.text for w in session.transcript.finalized]
            await live.stop()
            return words

        assert asyncio.run(scenario()) == ["hello"]
        assert session.total_events == 1

    def test_demo_driven_by_events_when_oracle_available(self):
        session = _session()
        oracle = ReplayOracle()

        async def scenario():
            live = _live(session, oracle=oracle, recognizer=FakeRecognizer(fail=True))
            await live.start()
            oracle.finish_calibration()
            await _settle()
            assert len(session.transcript) == 0
            oracle.feed(RawDetection(timestamp_ms=1000, fusion_score=0.9, energy=0.01))
            words = [w.text for w in session.transcript.finalized]
            await live.stop()
            return words

        assert asyncio.run(scenario()) == ["The"]


class TestRecognizerRecovery:
    def _run(self, recognizer, action, session=None):
        session = session or _session()

        async def scenario():
            live = _live(session, recognizer=recognizer)
            await live.start()
            action(recognizer)
            await _settle()
            state = (live.recognizing, session.demo_mode)
            await live.stop()
            return state

        return asyncio.run(scenario())

    def test_no_speech_restarts(self):
        recognizer = FakeRecognizer()
        recognizing, demo = self._run(recognizer, lambda r: r._emit_error("no-speech"))
        assert len(recognizer.starts) == 2
        assert recognizing and not demo

    def test_aborted_restarts(self):
        recognizer = FakeRecognizer()
        self._run(recognizer, lambda r: r._emit_error("aborted"))
        assert len(recognizer.starts) == 2

    def test_network_error_enters_demo_mode(self):
        recognizer = FakeRecognizer()
        recognizing, demo = self._run(recognizer, lambda r: r._emit_error("network"))
        assert demo and not recognizing
        assert len(recognizer.starts) == 1

    def test_other_errors_only_logged(self):
        recognizer = FakeRecognizer()
        recognizing, demo = self._run(recognizer, lambda r: r._emit_error("audio-capture"))
        assert recognizing and not demo
        assert len(recognizer.starts) == 1

    def test_end_restarts(self):
        recognizer = FakeRecognizer()
        self._run(recognizer, lambda r: r.end())
        assert len(recognizer.starts) == 2

    def test_failed_restart_enters_demo_mode(self):
        recognizer = FakeRecognizer()

        def fail_then_end(r):
            r.fail = True
            r.end()

        recognizing, demo = self._run(recognizer, fail_then_end)
        assert demo and not recognizing


class TestControls:
    def test_set_language_restarts_recognizer(self):
        session = _session()
        recognizer = FakeRecognizer()

        async def scenario():
            live = _live(session, recognizer=recognizer)
            await live.start()
            language = await live.set_language("de")
            await live.stop()
            return language

        assert asyncio.run(scenario()) == "de-DE"
        assert recognizer.starts == ["en-US", "de-DE"]
        assert session.settings.language == "de-DE"

    def test_set_language_restarts_once_when_stop_fires_end(self):
        session = _session()
        recognizer = EndOnStopRecognizer()

        async def scenario():
            live = _live(session, recognizer=recognizer)
            await live.start()
            await live.set_language("de")
            await _settle()
            assert live.recognizing
            await live.stop()

        asyncio.run(scenario())
        assert recognizer.starts == ["en-US", "de-DE"]

    def test_recalibrate(self):
        session = _session()
        oracle = ReplayOracle()

        async def scenario():
            live = _live(session, oracle=oracle, recognizer=FakeRecognizer())
            await live.start()
            oracle.finish_calibration()
            assert live.recalibrate()
            assert session.noise_calibrating
            await live.stop()

        asyncio.run(scenario())

    def test_recalibrate_without_oracle(self):
        live = _live(_session(), recognizer=FakeRecognizer())
        assert not live.recalibrate()


class TestStop:
    def test_stop_releases_inputs_without_flushing(self):
        frames = []
        session = CaptionSession(clock=ManualClock(), listener=frames.append)
        oracle = ReplayOracle()
        recognizer = FakeRecognizer()

        async def scenario():
            live = _live(session, oracle=oracle, recognizer=recognizer)
            await live.start()
            recognizer._emit_result(RecognitionResult.single("pending", False))
            await live.stop()

        asyncio.run(scenario())
        assert recognizer.closed
        assert not oracle.is_running
        assert session.is_stopped
        assert len(frames) == 1
        assert len(session.transcript) == 0

    def test_end_after_stop_does_not_restart(self):
        recognizer = FakeRecognizer()

        async def scenario():
            live = _live(_session(), recognizer=recognizer)
            await live.start()
            await live.stop()
            recognizer.end()
            await _settle()

        asyncio.run(scenario())
        assert len(recognizer.starts) == 1

    def test_close_failure_is_logged(self, caplog):
        oracle = ReplayOracle()

        async def scenario():
            live = _live(_session(), oracle=oracle, recognizer=BrokenCloseRecognizer())
            await live.start()
            await live.stop()

        asyncio.run(scenario())
        assert not oracle.is_running
        assert "Failed to stop Fake recognizer" in caplog.text
