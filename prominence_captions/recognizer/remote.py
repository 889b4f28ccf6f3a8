"""Websocket client for the remote recognizer proxy server.

WHY: When no local recognition engine is available, audio is streamed to
the proxy server (see prominence_captions.server), which relays it to a
cloud speech backend and streams results back. This client speaks that
protocol and presents it as an ordinary SpeechRecognizer.

HOW: websockets for the duplex connection, httpx for the optional
/health preflight, numpy for float32 → int16 PCM conversion. A
background task reads server frames, decodes each one once into a
protocol variant, and dispatches on its class.

RULES:
- start() connects on demand, then sends the start message
- Audio is only sent after the server answered "started"
- Malformed server frames are logged and dropped; the connection stays up
- A server "error" frame is passed to on_error as-is
- When the socket closes, streaming stops and on_end fires
- Connection failures raise InputUnavailableError("recognizer", ...)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence, Union

import httpx
import numpy as np
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from prominence_captions.config import RECOGNIZER_SAMPLE_RATE, RECOGNIZER_URL
from prominence_captions.errors import InputUnavailableError, MalformedMessageError
from prominence_captions.recognizer.base import SpeechRecognizer
from prominence_captions.recognizer.protocol import (
    AudioConfig,
    ErrorMessage,
    PingMessage,
    PongMessage,
    ResultMessage,
    StartedMessage,
    StartMessage,
    StopMessage,
    decode_server_message,
    encode_message,
)

logger = logging.getLogger(__name__)

_HEALTH_TIMEOUT_S = 5.0


def float32_to_int16(samples: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Convert float samples in [-1, 1] to int16 PCM.

    RULES:
    - Values are clamped to [-1, 1] first
    - Negative values scale by 0x8000, non-negative by 0x7FFF, so both
      extremes map exactly onto the int16 range
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
    return scaled.astype("<i2")


def health_url_for(server_url: str) -> str:
    """Derive the HTTP /health URL from a ws:// or wss:// server URL."""
    if server_url.startswith("wss://"):
        base = "https://" + server_url[len("wss://"):]
    elif server_url.startswith("ws://"):
        base = "http://" + server_url[len("ws://"):]
    else:
        base = server_url
    return base.rstrip("/") + "/health"


class RemoteRecognizer(SpeechRecognizer):
    """SpeechRecognizer backed by the proxy server's websocket protocol."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        language: str = "en-US",
        sample_rate: Optional[int] = None,
    ) -> None:
        super().__init__(language=language)
        self.server_url = server_url or RECOGNIZER_URL
        self.sample_rate = sample_rate or RECOGNIZER_SAMPLE_RATE
        self._ws: Any = None
        self._receiver: Optional[asyncio.Task] = None
        self._streaming = False

    @property
    def name(self) -> str:
        return "Remote recognizer"

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    async def check_health(self) -> Dict[str, Any]:
        """Ask the server whether its speech backend is configured.

        Raises:
            InputUnavailableError: If the server is unreachable or answers
                with a non-2xx status.
        """
        url = health_url_for(self.server_url)
        try:
            async with httpx.AsyncClient(timeout=_HEALTH_TIMEOUT_S) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise InputUnavailableError("recognizer", "health check failed: {}".format(exc)) from exc

        if resp.status_code != 200:
            raise InputUnavailableError(
                "recognizer",
                "health check returned {}".format(resp.status_code),
            )
        return resp.json()

    async def connect(self) -> None:
        """Open the websocket and start reading server frames."""
        if self._ws is not None:
            return
        try:
            self._ws = await websockets.connect(self.server_url)
        except (OSError, WebSocketException) as exc:
            raise InputUnavailableError(
                "recognizer",
                "cannot connect to {}: {}".format(self.server_url, exc),
            ) from exc
        logger.info("Connected to recognizer server %s", self.server_url)
        self._receiver = asyncio.ensure_future(self._receive_loop())

    async def start(self) -> None:
        await self.connect()
        config = AudioConfig(language=self.language, sample_rate=self.sample_rate)
        await self._send(encode_message(StartMessage(config=config)))
        self._running = True
        logger.info("Requested recognition (%s @ %d Hz)", self.language, self.sample_rate)

    async def send_audio(self, samples: Union[Sequence[float], np.ndarray]) -> bool:
        """Send one block of float32 samples as int16 PCM.

        Returns:
            False when the block was dropped because streaming has not
            started or the connection is gone.
        """
        if not self._streaming or self._ws is None:
            return False
        await self._send(float32_to_int16(samples).tobytes())
        return True

    async def ping(self) -> None:
        await self._send(encode_message(PingMessage()))

    async def stop(self) -> None:
        self._running = False
        self._streaming = False
        if self._ws is not None:
            try:
                await self._send(encode_message(StopMessage()))
            except InputUnavailableError:
                logger.debug("Stop message not delivered; connection already gone")

    async def disconnect(self) -> None:
        await self.stop()
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        if self._receiver is not None:
            self._receiver.cancel()
            try:
                await self._receiver
            except asyncio.CancelledError:
                pass
            self._receiver = None

    async def close(self) -> None:
        await self.disconnect()

    def handle_message(self, raw: Union[str, bytes]) -> None:
        """Decode one server frame and dispatch it."""
        try:
            message = decode_server_message(raw)
        except MalformedMessageError as exc:
            logger.warning("Dropping malformed server frame: %s", exc)
            return

        if isinstance(message, ResultMessage):
            self._emit_result(message.to_recognition_result())
        elif isinstance(message, StartedMessage):
            logger.info("Recognition started")
            self._streaming = True
        elif isinstance(message, ErrorMessage):
            logger.error("Server error: %s", message.message)
            self._emit_error(message.message)
        elif isinstance(message, PongMessage):
            pass

    async def _send(self, payload: Union[str, bytes]) -> None:
        if self._ws is None:
            raise InputUnavailableError("recognizer", "not connected")
        try:
            await self._ws.send(payload)
        except ConnectionClosed as exc:
            raise InputUnavailableError("recognizer", "connection closed") from exc

    async def _receive_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                self.handle_message(raw)
        except ConnectionClosed:
            logger.info("Recognizer server closed the connection")
        finally:
            if self._ws is ws:
                self._ws = None
            self._streaming = False
            was_running = self._running
            self._running = False
            if was_running:
                self._emit_end()
