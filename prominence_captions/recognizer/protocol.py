"""Wire protocol between the remote recognizer client and the proxy server.

WHY: Control messages and recognition results travel as JSON text frames
keyed by a "type" field; audio travels as binary frames. Dispatching on
raw dicts scatters string comparisons and missing-key bugs across both
ends. Each frame is decoded exactly once, at the boundary, into a typed
variant.

HOW: One pydantic model per message kind, each with a Literal ``type``.
Two discriminated unions (client → server, server → client) are decoded
with TypeAdapter.validate_json. Field aliases keep the camelCase wire
names (sampleRate, isFinal, startTime) while Python code uses snake_case.

RULES:
- Client → server: start {config{language, sampleRate}}, stop, ping
- Server → client: result {transcript, words[], isFinal, confidence},
  started, error {message}, pong
- Binary frames are raw little-endian int16 PCM and never decoded here
- Anything that fails validation raises MalformedMessageError
- encode_message() always writes wire (alias) names
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from prominence_captions.errors import MalformedMessageError
from prominence_captions.recognizer.base import RecognitionResult


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Client → server
# ---------------------------------------------------------------------------


class AudioConfig(_WireModel):
    """Recognition settings sent with the start message."""

    language: str = Field(default="en-US", description="BCP-47 recognition locale.")
    sample_rate: int = Field(
        default=16000,
        alias="sampleRate",
        gt=0,
        description="Sample rate of the int16 PCM audio frames in Hz.",
    )


class StartMessage(_WireModel):
    type: Literal["start"] = "start"
    config: AudioConfig = Field(default_factory=AudioConfig)


class StopMessage(_WireModel):
    type: Literal["stop"] = "stop"


class PingMessage(_WireModel):
    type: Literal["ping"] = "ping"


# ---------------------------------------------------------------------------
# Server → client
# ---------------------------------------------------------------------------


class WordTiming(_WireModel):
    """Per-word timing reported by the backend, in milliseconds."""

    word: str
    start_time: float = Field(default=0.0, alias="startTime")
    end_time: float = Field(default=0.0, alias="endTime")
    confidence: float = 0.0


class ResultMessage(_WireModel):
    type: Literal["result"] = "result"
    transcript: str = ""
    words: List[WordTiming] = Field(default_factory=list)
    is_final: bool = Field(default=False, alias="isFinal")
    confidence: float = 0.0

    def to_recognition_result(self) -> RecognitionResult:
        """The session only needs transcript and finality."""
        return RecognitionResult.single(self.transcript, self.is_final)


class StartedMessage(_WireModel):
    type: Literal["started"] = "started"


class ErrorMessage(_WireModel):
    type: Literal["error"] = "error"
    message: str = ""


class PongMessage(_WireModel):
    type: Literal["pong"] = "pong"


ClientMessage = Annotated[
    Union[StartMessage, StopMessage, PingMessage],
    Field(discriminator="type"),
]

ServerMessage = Annotated[
    Union[ResultMessage, StartedMessage, ErrorMessage, PongMessage],
    Field(discriminator="type"),
]

_CLIENT_ADAPTER = TypeAdapter(ClientMessage)
_SERVER_ADAPTER = TypeAdapter(ServerMessage)


def decode_client_message(raw: Union[str, bytes]) -> Union[StartMessage, StopMessage, PingMessage]:
    """Decode a client control frame.

    Raises:
        MalformedMessageError: On invalid JSON, unknown type, or bad fields.
    """
    try:
        return _CLIENT_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise MalformedMessageError(
            "Invalid client message: {}".format(_summarize(exc))
        ) from exc


def decode_server_message(
    raw: Union[str, bytes],
) -> Union[ResultMessage, StartedMessage, ErrorMessage, PongMessage]:
    """Decode a server frame.

    Raises:
        MalformedMessageError: On invalid JSON, unknown type, or bad fields.
    """
    try:
        return _SERVER_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise MalformedMessageError(
            "Invalid server message: {}".format(_summarize(exc))
        ) from exc


def encode_message(message: BaseModel) -> str:
    """Serialize any protocol message with its wire field names."""
    return message.model_dump_json(by_alias=True)


def _summarize(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return "{} ({})".format(first.get("msg", "invalid"), location)
