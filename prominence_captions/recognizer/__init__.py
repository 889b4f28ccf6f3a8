"""Speech recognizer package: where caption words come from.

WHY: The session consumes recognized text through one small interface
so it works the same with a remote proxy server, a scripted replay, or
any future local engine.

HOW: base.py defines SpeechRecognizer and RecognitionResult,
protocol.py the proxy wire messages, remote.py the websocket client.

RULES:
- All websocket traffic goes through RemoteRecognizer
- Wire frames are decoded once, in protocol.py
"""

from prominence_captions.recognizer.base import (
    RecognitionResult,
    RecognitionSegment,
    SpeechRecognizer,
)

__all__ = ["RecognitionResult", "RecognitionSegment", "SpeechRecognizer"]
