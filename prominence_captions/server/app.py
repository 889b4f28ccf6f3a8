"""FastAPI recognizer proxy: websocket audio in, recognition results out.

WHY: Caption clients that cannot run a recognizer themselves stream
microphone audio here. The server holds the cloud credentials, relays
audio to the speech backend, and relays interim and final results back
in the small JSON protocol of prominence_captions.recognizer.protocol.

HOW: One websocket route plus two HTTP endpoints. Each websocket
connection gets a client ID in the StreamStore. Text frames (and binary
frames starting with "{") are decoded once into control messages; other
binary frames are raw int16 PCM for the active stream. Backend
callbacks run on worker threads and are marshalled back onto the event
loop with asyncio.run_coroutine_threadsafe.

RULES:
- start → replace any existing stream, reply "started"; no backend →
  reply "error" with SPEECH_CLIENT_MISSING
- stop → close the stream; ping → pong
- Audio without an active stream is dropped
- Malformed control frames are logged and dropped; the socket stays open
- A backend error is sent as "error" and ends that stream
- Disconnect closes the client's stream
- The backend is created at startup unless set_backend() was called
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from prominence_captions import __version__
from prominence_captions.config import RECOGNIZER_BACKEND, SERVER_HOST, SERVER_PORT
from prominence_captions.errors import MalformedMessageError
from prominence_captions.recognizer.protocol import (
    ErrorMessage,
    PingMessage,
    PongMessage,
    ResultMessage,
    StartedMessage,
    StartMessage,
    StopMessage,
    decode_client_message,
    encode_message,
)
from prominence_captions.server.backends import create_backend
from prominence_captions.server.backends.base import RecognitionBackend, RecognitionStream
from prominence_captions.server.models import HealthResponse, StatusResponse
from prominence_captions.server.streams import StreamStore

logger = logging.getLogger(__name__)

SPEECH_CLIENT_MISSING = "Speech client not initialized. Check server configuration."

# ---------------------------------------------------------------------------
# App, store and backend setup
# ---------------------------------------------------------------------------

stream_store = StreamStore()

_backend: Optional[RecognitionBackend] = None
_backend_configured = False


def get_backend() -> Optional[RecognitionBackend]:
    return _backend


def set_backend(backend: Optional[RecognitionBackend]) -> None:
    """Install the speech backend (None disables recognition)."""
    global _backend, _backend_configured
    _backend = backend
    _backend_configured = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the speech backend on startup, close all streams on shutdown."""
    if not _backend_configured:
        set_backend(create_backend(RECOGNIZER_BACKEND))
    logger.info("Speech API: %s", "ready" if _backend is not None else "not configured")
    yield
    stream_store.stop_all()


app = FastAPI(
    lifespan=lifespan,
    title="Prominence Captions Recognizer Proxy",
    description=(
        "Relays int16 PCM audio from caption clients to a cloud speech "
        "recognizer and streams interim and final results back over the "
        "same websocket."
    ),
    version=__version__,
)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check that also reports whether a speech backend is configured.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        speech_client=get_backend() is not None,
        active_connections=stream_store.connection_count,
    )


@app.get(
    "/api/status",
    response_model=StatusResponse,
    tags=["health"],
    summary="Speech backend status",
)
async def api_status() -> StatusResponse:
    ready = get_backend() is not None
    return StatusResponse(
        ready=ready,
        message="Speech-to-Text API ready" if ready else "API credentials not configured",
    )


# ---------------------------------------------------------------------------
# Endpoints: Recognition websocket
# ---------------------------------------------------------------------------


@app.websocket("/")
async def recognition_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    client_id = stream_store.connect_client()
    loop = asyncio.get_running_loop()

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break

            text = frame.get("text")
            data = frame.get("bytes")
            if text is not None:
                await _handle_control(websocket, client_id, text, loop)
            elif data is not None:
                if data[:1] == b"{":
                    await _handle_control(websocket, client_id, data, loop)
                else:
                    stream_store.write_audio(client_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        stream_store.disconnect_client(client_id)


# ---------------------------------------------------------------------------
# Helpers (private)
# ---------------------------------------------------------------------------


async def _handle_control(
    websocket: WebSocket,
    client_id: str,
    raw: Union[str, bytes],
    loop: asyncio.AbstractEventLoop,
) -> None:
    try:
        message = decode_client_message(raw)
    except MalformedMessageError as exc:
        logger.warning("[%s] Dropping malformed control message: %s", client_id, exc)
        return

    if isinstance(message, StartMessage):
        await _start_recognition(websocket, client_id, message, loop)
    elif isinstance(message, StopMessage):
        stream_store.stop_stream(client_id)
    elif isinstance(message, PingMessage):
        await websocket.send_text(encode_message(PongMessage()))


async def _start_recognition(
    websocket: WebSocket,
    client_id: str,
    message: StartMessage,
    loop: asyncio.AbstractEventLoop,
) -> None:
    """Open a backend stream for the client, replacing any existing one."""
    backend = get_backend()
    if backend is None:
        await websocket.send_text(encode_message(ErrorMessage(message=SPEECH_CLIENT_MISSING)))
        return

    stream_store.stop_stream(client_id)
    opened: List[RecognitionStream] = []
    failed = threading.Event()

    def send(reply: Union[ResultMessage, ErrorMessage]) -> None:
        if loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(
            websocket.send_text(encode_message(reply)), loop
        )
        future.add_done_callback(_log_send_failure)

    def on_result(result: ResultMessage) -> None:
        send(result)

    def on_error(error: str) -> None:
        logger.error("[%s] Recognition error: %s", client_id, error)
        failed.set()
        send(ErrorMessage(message=error))
        if opened:
            stream_store.stop_stream(client_id, expected=opened[0])

    try:
        stream: RecognitionStream = backend.open_stream(message.config, on_result, on_error)
    except Exception as exc:
        logger.exception("[%s] Failed to open recognition stream", client_id)
        await websocket.send_text(encode_message(ErrorMessage(message=str(exc))))
        return
    if failed.is_set():
        stream.close()
        return

    opened.append(stream)
    stream_store.add_stream(client_id, stream, message.config)
    try:
        stream.start()
    except Exception as exc:
        logger.exception("[%s] Failed to start recognition stream", client_id)
        stream_store.stop_stream(client_id, expected=stream)
        await websocket.send_text(encode_message(ErrorMessage(message=str(exc))))
        return
    if failed.is_set():
        # on_error already replied and unregistered the stream
        return
    await websocket.send_text(encode_message(StartedMessage()))


def _log_send_failure(future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("Dropped reply for closed websocket: %s", exc)


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the proxy with uvicorn (blocking)."""
    import uvicorn

    uvicorn.run(app, host=host or SERVER_HOST, port=port or SERVER_PORT)
