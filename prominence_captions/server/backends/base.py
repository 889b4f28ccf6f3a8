"""Speech recognition backend interface for the proxy server.

WHY: The proxy relays int16 PCM from a websocket client to some cloud
recognizer and relays results back. Keeping the cloud client behind an
interface lets the server run (and be tested) without credentials.

HOW: A RecognitionBackend opens one RecognitionStream per start request.
The stream accepts audio chunks and reports ResultMessage values and
error strings through callbacks, possibly from a worker thread.

RULES:
- open_stream() returns an idle stream; callbacks fire only after start()
- The server registers a stream before starting it
- write() after close() is ignored
- on_error fires at most once and the stream is finished afterwards
- Callbacks may run on any thread; the server marshals them back
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from prominence_captions.recognizer.protocol import AudioConfig, ResultMessage

ResultHandler = Callable[[ResultMessage], None]
ErrorHandler = Callable[[str], None]


class RecognitionStream(ABC):
    """One streaming recognition request."""

    @abstractmethod
    def start(self) -> None:
        """Begin recognition; results and errors may arrive from here on."""

    @abstractmethod
    def write(self, audio: bytes) -> None:
        """Queue one chunk of little-endian int16 PCM."""

    @abstractmethod
    def close(self) -> None:
        """End the audio stream; safe to call more than once."""


class RecognitionBackend(ABC):
    """Abstract factory for recognition streams.

    To add a new backend:
    1. Create a new file in server/backends/
    2. Subclass RecognitionBackend and RecognitionStream
    3. Register it in BACKENDS in server/backends/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""

    @abstractmethod
    def open_stream(
        self,
        config: AudioConfig,
        on_result: ResultHandler,
        on_error: ErrorHandler,
    ) -> RecognitionStream:
        """Create a streaming recognition request without starting it."""
