"""Tests for the FastAPI recognizer proxy.

WHY: The proxy is the only place where websocket framing, the stream
store, and backend callbacks from worker threads meet. These tests run
the real app through Starlette's TestClient with a fake backend.

HOW: FakeBackend opens FakeStreams that answer specific audio payloads:
b"\\x01\\x02" produces a final result on the calling thread, b"\\xff\\xff"
fails the stream from a separate thread, like a real backend would.
Module state (backend, stream store) is monkeypatched per test.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from prominence_captions.recognizer.protocol import ResultMessage
from prominence_captions.server import app as app_module
from prominence_captions.server.app import SPEECH_CLIENT_MISSING, app
from prominence_captions.server.backends.base import RecognitionBackend, RecognitionStream
from prominence_captions.server.streams import StreamStore

RESULT_AUDIO = b"\x01\x02"
FAIL_AUDIO = b"\xff\xff"


class FakeStream(RecognitionStream):
    def __init__(self, config, on_result, on_error):
        self.config = config
        self.on_result = on_result
        self.on_error = on_error
        self.audio = []
        self.closed = False
        self.started = False
        self.fail_on_start = False

    def start(self) -> None:
        self.started = True
        if self.fail_on_start:
            worker = threading.Thread(target=self.on_error, args=("boom",))
            worker.start()
            worker.join()

    def write(self, audio: bytes) -> None:
        self.audio.append(audio)
        if audio == RESULT_AUDIO:
            self.on_result(ResultMessage(transcript="hello", is_final=True))
        elif audio == FAIL_AUDIO:
            worker = threading.Thread(target=self.on_error, args=("boom",))
            worker.start()
            worker.join()

    def close(self) -> None:
        self.closed = True


class FakeBackend(RecognitionBackend):
    def __init__(self, fail_open=False):
        self.streams = []
        self.fail_open = fail_open
        self.fail_while_opening = False
        self.fail_on_start = False

    @property
    def name(self) -> str:
        return "Fake backend"

    def open_stream(self, config, on_result, on_error):
        if self.fail_open:
            raise RuntimeError("quota exceeded")
        stream = FakeStream(config, on_result, on_error)
        self.streams.append(stream)
        stream.fail_on_start = self.fail_on_start
        if self.fail_while_opening:
            on_error("boom")
        return stream


@pytest.fixture
def store(monkeypatch):
    fresh = StreamStore()
    monkeypatch.setattr(app_module, "stream_store", fresh)
    return fresh


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(app_module, "_backend", fake)
    monkeypatch.setattr(app_module, "_backend_configured", True)
    return fake


@pytest.fixture
def client(store, backend):
    with TestClient(app) as c:
        yield c


def _start(ws, language="en-US", sample_rate=16000):
    ws.send_json({"type": "start", "config": {"language": language, "sampleRate": sample_rate}})
    return ws.receive_json()


def _sync(ws):
    """Round-trip a ping so earlier frames are known to be processed."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class TestHTTP:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "speechClient": True, "activeConnections": 0}

    def test_health_counts_connections(self, client):
        with client.websocket_connect("/") as ws:
            _sync(ws)
            assert client.get("/health").json()["activeConnections"] == 1

    def test_status_ready(self, client):
        assert client.get("/api/status").json() == {
            "ready": True,
            "message": "Speech-to-Text API ready",
        }

    def test_without_backend(self, store, monkeypatch):
        monkeypatch.setattr(app_module, "_backend", None)
        monkeypatch.setattr(app_module, "_backend_configured", True)
        with TestClient(app) as c:
            assert c.get("/health").json()["speechClient"] is False
            assert c.get("/api/status").json()["ready"] is False
            with c.websocket_connect("/") as ws:
                assert _start(ws) == {"type": "error", "message": SPEECH_CLIENT_MISSING}


# ---------------------------------------------------------------------------
# Websocket
# ---------------------------------------------------------------------------


class TestRecognitionSocket:
    def test_start_opens_stream_with_config(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            assert _start(ws, language="sv-SE", sample_rate=48000) == {"type": "started"}
            assert store.stream_count == 1
        config = backend.streams[0].config
        assert backend.streams[0].started
        assert (config.language, config.sample_rate) == ("sv-SE", 48000)

    def test_audio_relayed_and_result_returned(self, client, backend):
        with client.websocket_connect("/") as ws:
            _start(ws)
            ws.send_bytes(RESULT_AUDIO)
            assert ws.receive_json() == {
                "type": "result",
                "transcript": "hello",
                "words": [],
                "isFinal": True,
                "confidence": 0.0,
            }
        assert backend.streams[0].audio == [RESULT_AUDIO]

    def test_audio_before_start_dropped(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            ws.send_bytes(b"\x00\x00")
            _sync(ws)
            assert backend.streams == []

    def test_binary_json_is_control(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_bytes(b'{"type": "ping"}')
            assert ws.receive_json() == {"type": "pong"}

    def test_malformed_control_keeps_socket_open(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text("{broken")
            ws.send_text('{"type": "jump"}')
            _sync(ws)

    def test_restart_replaces_stream(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            _start(ws)
            _start(ws)
            assert backend.streams[0].closed
            assert not backend.streams[1].closed
            assert store.stream_count == 1

    def test_stop_closes_stream(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            _start(ws)
            ws.send_json({"type": "stop"})
            _sync(ws)
            assert backend.streams[0].closed
            assert store.stream_count == 0

    def test_backend_error_sent_and_stream_ended(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            _start(ws)
            ws.send_bytes(FAIL_AUDIO)
            assert ws.receive_json() == {"type": "error", "message": "boom"}
            assert backend.streams[0].closed
            assert store.stream_count == 0

    def test_open_failure_reported(self, client, backend):
        backend.fail_open = True
        with client.websocket_connect("/") as ws:
            assert _start(ws) == {"type": "error", "message": "quota exceeded"}

    def test_failure_on_start_leaves_no_stream(self, client, backend, store):
        backend.fail_on_start = True
        with client.websocket_connect("/") as ws:
            assert _start(ws) == {"type": "error", "message": "boom"}
            _sync(ws)
            assert store.stream_count == 0
            assert backend.streams[0].closed

    def test_failure_while_opening_leaves_no_stream(self, client, backend, store):
        backend.fail_while_opening = True
        with client.websocket_connect("/") as ws:
            assert _start(ws) == {"type": "error", "message": "boom"}
            _sync(ws)
            assert store.stream_count == 0
            assert backend.streams[0].closed
            assert not backend.streams[0].started

    def test_disconnect_closes_stream(self, client, backend, store):
        with client.websocket_connect("/") as ws:
            _start(ws)
        assert backend.streams[0].closed
        assert store.connection_count == 0
