"""Thread-safe store of websocket clients and their recognition streams.

WHY: Each websocket client may have at most one live recognition stream.
Streams are fed from the event loop but report results and errors from
backend threads, so the mapping is shared across threads.

HOW: StreamStore keeps a set of connected client IDs and a dict of
ActiveStream records, both guarded by one threading.Lock. Closing a
stream may block on the backend, so it always happens outside the lock.

RULES:
- All reads and writes of the maps acquire self._lock
- add_stream() replaces (and closes) any previous stream for the client
- stop_stream(expected=...) only stops that exact stream, so a late
  error from an old stream cannot stop its replacement
- Audio for a client without a stream is dropped
- Client IDs are UUID4 hex strings
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from prominence_captions.recognizer.protocol import AudioConfig
from prominence_captions.server.backends.base import RecognitionStream

logger = logging.getLogger(__name__)


@dataclass
class ActiveStream:
    """One client's live recognition stream and the config it was opened with."""

    client_id: str
    stream: RecognitionStream
    config: AudioConfig
    started_at: float = field(default_factory=time.time)
    bytes_received: int = 0


class StreamStore:
    """Tracks websocket clients and their active recognition streams."""

    def __init__(self) -> None:
        self._clients: Set[str] = set()
        self._streams: Dict[str, ActiveStream] = {}
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._clients)

    @property
    def stream_count(self) -> int:
        with self._lock:
            return len(self._streams)

    def connect_client(self) -> str:
        client_id = uuid.uuid4().hex
        with self._lock:
            self._clients.add(client_id)
        logger.info("Client connected: %s", client_id)
        return client_id

    def disconnect_client(self, client_id: str) -> None:
        with self._lock:
            self._clients.discard(client_id)
        self.stop_stream(client_id)
        logger.info("Client disconnected: %s", client_id)

    def add_stream(
        self,
        client_id: str,
        stream: RecognitionStream,
        config: AudioConfig,
    ) -> ActiveStream:
        """Register a client's stream, closing the one it replaces."""
        active = ActiveStream(client_id=client_id, stream=stream, config=config)
        with self._lock:
            previous = self._streams.get(client_id)
            self._streams[client_id] = active

        if previous is not None:
            previous.stream.close()
            logger.info("Replaced recognition stream for %s", client_id)
        logger.info(
            "Started recognition for %s (%s @ %d Hz)",
            client_id, config.language, config.sample_rate,
        )
        return active

    def get_stream(self, client_id: str) -> Optional[ActiveStream]:
        with self._lock:
            return self._streams.get(client_id)

    def write_audio(self, client_id: str, audio: bytes) -> bool:
        """Forward an audio frame; returns False when the client has no stream."""
        with self._lock:
            active = self._streams.get(client_id)
            if active is not None:
                active.bytes_received += len(audio)
        if active is None:
            return False
        active.stream.write(audio)
        return True

    def stop_stream(
        self,
        client_id: str,
        expected: Optional[RecognitionStream] = None,
    ) -> bool:
        """Close and forget a client's stream.

        Args:
            client_id: The client whose stream to stop.
            expected: If given, only stop when this is the active stream.

        Returns:
            True if a stream was stopped.
        """
        with self._lock:
            active = self._streams.get(client_id)
            if active is None or (expected is not None and active.stream is not expected):
                return False
            del self._streams[client_id]

        active.stream.close()
        logger.info("Stopped recognition for %s", client_id)
        return True

    def stop_all(self) -> int:
        with self._lock:
            streams: List[ActiveStream] = list(self._streams.values())
            self._streams.clear()
        for active in streams:
            active.stream.close()
        if streams:
            logger.info("Stopped %d recognition stream(s)", len(streams))
        return len(streams)
