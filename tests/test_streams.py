"""Tests for the proxy server's StreamStore."""

import threading

from prominence_captions.recognizer.protocol import AudioConfig
from prominence_captions.server.backends.base import RecognitionStream
from prominence_captions.server.streams import StreamStore


class RecordingStream(RecognitionStream):
    def __init__(self):
        self.chunks = []
        self.closed = 0

    def start(self) -> None:
        pass

    def write(self, audio: bytes) -> None:
        self.chunks.append(audio)

    def close(self) -> None:
        self.closed += 1


class TestClients:
    def test_connect_and_disconnect(self):
        store = StreamStore()
        a = store.connect_client()
        b = store.connect_client()
        assert a != b
        assert len(a) == 32
        assert store.connection_count == 2
        store.disconnect_client(a)
        assert store.connection_count == 1

    def test_disconnect_closes_stream(self):
        store = StreamStore()
        client = store.connect_client()
        stream = RecordingStream()
        store.add_stream(client, stream, AudioConfig())
        store.disconnect_client(client)
        assert stream.closed == 1
        assert store.stream_count == 0


class TestStreams:
    def test_audio_routed_to_active_stream(self):
        store = StreamStore()
        client = store.connect_client()
        stream = RecordingStream()
        store.add_stream(client, stream, AudioConfig(sample_rate=48000))

        assert store.write_audio(client, b"\x00\x01")
        assert store.write_audio(client, b"\x02\x03\x04\x05")
        assert stream.chunks == [b"\x00\x01", b"\x02\x03\x04\x05"]
        assert store.get_stream(client).bytes_received == 6
        assert store.get_stream(client).config.sample_rate == 48000

    def test_audio_without_stream_dropped(self):
        store = StreamStore()
        assert not store.write_audio(store.connect_client(), b"\x00\x00")

    def test_add_replaces_and_closes_previous(self):
        store = StreamStore()
        client = store.connect_client()
        old, new = RecordingStream(), RecordingStream()
        store.add_stream(client, old, AudioConfig())
        store.add_stream(client, new, AudioConfig())

        assert old.closed == 1
        assert new.closed == 0
        assert store.get_stream(client).stream is new
        assert store.stream_count == 1

    def test_stop_with_expected_ignores_replaced_stream(self):
        store = StreamStore()
        client = store.connect_client()
        old, new = RecordingStream(), RecordingStream()
        store.add_stream(client, old, AudioConfig())
        store.add_stream(client, new, AudioConfig())

        assert not store.stop_stream(client, expected=old)
        assert store.get_stream(client).stream is new
        assert store.stop_stream(client, expected=new)
        assert new.closed == 1

    def test_stop_unknown_client(self):
        assert not StreamStore().stop_stream("nope")

    def test_stop_all(self):
        store = StreamStore()
        streams = [RecordingStream() for _ in range(3)]
        for stream in streams:
            store.add_stream(store.connect_client(), stream, AudioConfig())
        assert store.stop_all() == 3
        assert all(s.closed == 1 for s in streams)
        assert store.stream_count == 0

    def test_concurrent_writes_counted(self):
        store = StreamStore()
        client = store.connect_client()
        store.add_stream(client, RecordingStream(), AudioConfig())

        def pump():
            for _ in range(200):
                store.write_audio(client, b"\x00\x00")

        threads = [threading.Thread(target=pump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.get_stream(client).bytes_received == 4 * 200 * 2
