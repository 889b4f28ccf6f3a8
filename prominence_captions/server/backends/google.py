"""Google Cloud Speech-to-Text streaming backend.

WHY: The browser recognizer the captioner was first built around is not
available outside a browser. Google's streaming API gives interim and
final results with word time offsets from plain int16 PCM.

HOW: google-cloud-speech is an optional extra, imported lazily so the
server runs without it. Each stream owns a worker thread that calls the
blocking streaming_recognize() with a generator draining a queue.Queue;
write() puts chunks on the queue, close() puts the None sentinel.
Responses are converted to ResultMessage values as they arrive.

RULES:
- LINEAR16, word time offsets, word confidence, automatic punctuation,
  model "default", interim results on
- Only the first alternative of each result is forwarded
- Word times are sent in milliseconds (seconds * 1000 + nanos / 1e6)
- A failure after close() is expected (stream torn down) and not reported
"""

from __future__ import annotations

import datetime
import logging
import queue
import threading
from typing import Any, Iterator, List, Optional

from prominence_captions.recognizer.protocol import AudioConfig, ResultMessage, WordTiming
from prominence_captions.server.backends.base import (
    ErrorHandler,
    RecognitionBackend,
    RecognitionStream,
    ResultHandler,
)

logger = logging.getLogger(__name__)


def _load_speech_module() -> Any:
    from google.cloud import speech

    return speech


def duration_to_ms(value: Any) -> float:
    """Convert a protobuf Duration (or timedelta) to milliseconds; None → 0."""
    if value is None:
        return 0.0
    if isinstance(value, datetime.timedelta):
        return value.total_seconds() * 1000.0
    seconds = int(getattr(value, "seconds", 0) or 0)
    nanos = int(getattr(value, "nanos", 0) or 0)
    return seconds * 1000.0 + nanos / 1_000_000.0


def response_to_messages(response: Any) -> List[ResultMessage]:
    """Turn one StreamingRecognizeResponse into result messages."""
    messages: List[ResultMessage] = []
    for result in response.results or ():
        if not result.alternatives:
            continue
        alternative = result.alternatives[0]
        words = [
            WordTiming(
                word=info.word,
                start_time=duration_to_ms(info.start_time),
                end_time=duration_to_ms(info.end_time),
                confidence=info.confidence or 0.0,
            )
            for info in (alternative.words or ())
        ]
        messages.append(ResultMessage(
            transcript=alternative.transcript,
            words=words,
            is_final=bool(result.is_final),
            confidence=alternative.confidence or 0.0,
        ))
    return messages


def build_streaming_config(speech: Any, config: AudioConfig) -> Any:
    return speech.StreamingRecognitionConfig(
        config=speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=config.sample_rate,
            language_code=config.language,
            enable_word_time_offsets=True,
            enable_word_confidence=True,
            enable_automatic_punctuation=True,
            model="default",
        ),
        interim_results=True,
    )


class GoogleRecognitionStream(RecognitionStream):
    """One streaming_recognize() call running on a worker thread."""

    def __init__(
        self,
        client: Any,
        speech: Any,
        config: AudioConfig,
        on_result: ResultHandler,
        on_error: ErrorHandler,
    ) -> None:
        self._client = client
        self._speech = speech
        self._streaming_config = build_streaming_config(speech, config)
        self._on_result = on_result
        self._on_error = on_error
        self._queue: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name="speech-stream-{}".format(config.language),
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def write(self, audio: bytes) -> None:
        if not self._closed.is_set():
            self._queue.put(audio)

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self._queue.put(None)

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _requests(self) -> Iterator[Any]:
        while True:
            chunk = self._queue.get()
            if chunk is None:
                return
            yield self._speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run(self) -> None:
        try:
            responses = self._client.streaming_recognize(
                config=self._streaming_config,
                requests=self._requests(),
            )
            for response in responses:
                for message in response_to_messages(response):
                    self._on_result(message)
        except Exception as exc:
            if self._closed.is_set():
                logger.debug("Recognition stream ended after close: %s", exc)
                return
            logger.exception("Recognition stream failed")
            self._closed.set()
            self._on_error(str(exc))


class GoogleSpeechBackend(RecognitionBackend):
    """Creates Google streaming recognition requests.

    Raises on construction if google-cloud-speech is missing or the
    application default credentials cannot be found.
    """

    def __init__(self, client: Any = None, speech_module: Any = None) -> None:
        self._speech = speech_module or _load_speech_module()
        self._client = client or self._speech.SpeechClient()

    @property
    def name(self) -> str:
        return "Google Cloud Speech-to-Text"

    def open_stream(
        self,
        config: AudioConfig,
        on_result: ResultHandler,
        on_error: ErrorHandler,
    ) -> GoogleRecognitionStream:
        return GoogleRecognitionStream(self._client, self._speech, config, on_result, on_error)
