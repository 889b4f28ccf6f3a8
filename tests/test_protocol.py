"""Tests for the recognizer wire protocol."""

import json

import pytest

from prominence_captions.errors import MalformedMessageError
from prominence_captions.recognizer.protocol import (
    AudioConfig,
    ErrorMessage,
    PingMessage,
    ResultMessage,
    StartMessage,
    StopMessage,
    decode_client_message,
    decode_server_message,
    encode_message,
)


class TestClientMessages:
    def test_start_with_config(self):
        msg = decode_client_message('{"type": "start", "config": {"language": "sv-SE", "sampleRate": 48000}}')
        assert isinstance(msg, StartMessage)
        assert msg.config.language == "sv-SE"
        assert msg.config.sample_rate == 48000

    def test_start_defaults(self):
        msg = decode_client_message('{"type": "start"}')
        assert msg.config == AudioConfig()
        assert msg.config.sample_rate == 16000

    def test_stop_and_ping(self):
        assert isinstance(decode_client_message('{"type": "stop"}'), StopMessage)
        assert isinstance(decode_client_message(b'{"type": "ping"}'), PingMessage)

    @pytest.mark.parametrize("raw", [
        "not json",
        '{"type": "dance"}',
        '{"config": {}}',
        '{"type": "start", "config": {"sampleRate": 0}}',
        '{"type": "result", "transcript": "x"}',
    ])
    def test_malformed_raises(self, raw):
        with pytest.raises(MalformedMessageError):
            decode_client_message(raw)


class TestServerMessages:
    def test_result(self):
        raw = json.dumps({
            "type": "result",
            "transcript": "hello world",
            "words": [{"word": "hello", "startTime": 0, "endTime": 400, "confidence": 0.9}],
            "isFinal": True,
            "confidence": 0.93,
        })
        msg = decode_server_message(raw)
        assert isinstance(msg, ResultMessage)
        assert msg.is_final
        assert msg.words[0].end_time == 400

        result = msg.to_recognition_result()
        assert result.partition() == ("hello world", "")

    def test_interim_result(self):
        msg = decode_server_message('{"type": "result", "transcript": "hel"}')
        assert msg.to_recognition_result().partition() == ("", "hel")

    def test_error(self):
        msg = decode_server_message('{"type": "error", "message": "quota"}')
        assert isinstance(msg, ErrorMessage)
        assert msg.message == "quota"

    def test_client_type_rejected(self):
        with pytest.raises(MalformedMessageError):
            decode_server_message('{"type": "ping"}')


class TestEncode:
    def test_uses_wire_names(self):
        data = json.loads(encode_message(StartMessage(config=AudioConfig(language="de-DE", sample_rate=8000))))
        assert data == {"type": "start", "config": {"language": "de-DE", "sampleRate": 8000}}

    def test_result_uses_is_final_alias(self):
        data = json.loads(encode_message(ResultMessage(transcript="x", is_final=True)))
        assert data["isFinal"] is True
        assert "is_final" not in data
