"""Tests for Wyoming STT/TTS helper functions."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from cadence.assistant.config import MicConfig, WyomingEndpoint
from cadence.assistant.wyoming import synthesize_to_sink, transcribe_audio
from wyoming.asr import Transcript
from wyoming.audio import AudioChunk, AudioStart, AudioStop
from wyoming.event import Event

pytestmark = pytest.mark.anyio


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mic():
    """Standard 16kHz mono mic configuration (960 bytes per 30ms chunk)."""
    return MicConfig(command=["arecord"], rate=16000, width=2, channels=1, chunk_ms=30)


@pytest.fixture
def endpoint():
    return WyomingEndpoint(host="localhost", port=10300)


@pytest.fixture
def endpoint_with_model():
    return WyomingEndpoint(host="localhost", port=10300, model="whisper-base")


@pytest.fixture
def mock_client():
    """Create a mock AsyncTcpClient with async connect/disconnect/read/write."""
    client = AsyncMock()
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    client.write_event = AsyncMock()
    client.read_event = AsyncMock(return_value=None)
    return client


@pytest.fixture
def patch_tcp_client(mock_client):
    """Patch AsyncTcpClient to return mock_client and yield (constructor_mock, client)."""
    with patch("cadence.assistant.wyoming.AsyncTcpClient") as ctor:
        ctor.return_value = mock_client
        yield ctor, mock_client


@pytest.fixture
def mock_sink():
    sink = AsyncMock()
    sink.start = AsyncMock()
    sink.write = AsyncMock()
    sink.stop = AsyncMock()
    return sink


def _written_types(client):
    return [call.args[0].type for call in client.write_event.call_args_list]


# ============================================================================
# transcribe_audio
# ============================================================================


class TestTranscribeAudio:
    async def test_successful_transcription(self, endpoint, mic, patch_tcp_client):
        ctor, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=Transcript(text="i did it").event())

        result = await transcribe_audio(b"\x00" * 960, endpoint=endpoint, mic=mic, timeout=5.0)

        assert result == "i did it"
        ctor.assert_called_once_with("localhost", 10300)
        client.connect.assert_awaited_once()
        client.disconnect.assert_awaited_once()

    async def test_audio_is_chunked(self, endpoint, mic, patch_tcp_client):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=Transcript(text="x").event())

        await transcribe_audio(b"\x00" * (960 * 2 + 100), endpoint=endpoint, mic=mic)

        assert _written_types(client) == [
            "transcribe",
            "audio-start",
            "audio-chunk",
            "audio-chunk",
            "audio-chunk",
            "audio-stop",
        ]

    async def test_returns_none_on_connection_closed(self, endpoint, mic, patch_tcp_client):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=None)

        assert await transcribe_audio(b"\x00" * 960, endpoint=endpoint, mic=mic) is None
        client.disconnect.assert_awaited_once()

    async def test_skips_unrelated_events(self, endpoint, mic, patch_tcp_client):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(side_effect=[Event(type="info"), Transcript(text="help").event()])

        assert await transcribe_audio(b"\x00" * 960, endpoint=endpoint, mic=mic) == "help"

    async def test_endpoint_model_and_language(self, endpoint_with_model, mic, patch_tcp_client):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=Transcript(text="test").event())

        await transcribe_audio(b"\x00" * 960, endpoint=endpoint_with_model, mic=mic, language="fr")

        event = client.write_event.call_args_list[0].args[0]
        assert "whisper-base" in str(event.data)
        assert "fr" in str(event.data)

    async def test_disconnects_on_error(self, endpoint, mic, patch_tcp_client):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(side_effect=ConnectionResetError("reset"))

        with pytest.raises(ConnectionResetError):
            await transcribe_audio(b"\x00" * 960, endpoint=endpoint, mic=mic)
        client.disconnect.assert_awaited_once()


# ============================================================================
# synthesize_to_sink
# ============================================================================


class TestSynthesizeToSink:
    async def test_streams_audio_into_sink(self, endpoint, patch_tcp_client, mock_sink):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(
            side_effect=[
                AudioStart(rate=22050, width=2, channels=1).event(),
                AudioChunk(rate=22050, width=2, channels=1, audio=b"\x01\x02").event(),
                AudioChunk(rate=22050, width=2, channels=1, audio=b"\x03\x04").event(),
                AudioStop().event(),
            ]
        )

        chunks = await synthesize_to_sink("Nice work", endpoint=endpoint, sink=mock_sink)

        assert chunks == 2
        mock_sink.start.assert_awaited_once_with(22050, 2, 1)
        assert [call.args[0] for call in mock_sink.write.await_args_list] == [b"\x01\x02", b"\x03\x04"]
        mock_sink.stop.assert_awaited_once()
        client.disconnect.assert_awaited_once()

    async def test_chunk_without_start_opens_sink(self, endpoint, patch_tcp_client, mock_sink):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(
            side_effect=[AudioChunk(rate=16000, width=2, channels=1, audio=b"\x00\x00").event(), None]
        )

        assert await synthesize_to_sink("hi", endpoint=endpoint, sink=mock_sink) == 1
        mock_sink.start.assert_awaited_once_with(16000, 2, 1)

    async def test_empty_stream_never_opens_sink(self, endpoint, patch_tcp_client, mock_sink):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=None)

        assert await synthesize_to_sink("hi", endpoint=endpoint, sink=mock_sink) == 0
        mock_sink.start.assert_not_called()
        mock_sink.stop.assert_not_called()

    async def test_voice_name_is_sent(self, endpoint, patch_tcp_client, mock_sink):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(return_value=None)

        await synthesize_to_sink("hi", endpoint=endpoint, sink=mock_sink, voice_name="en_US-amy-low")

        event = client.write_event.call_args_list[0].args[0]
        assert event.type == "synthesize"
        assert "en_US-amy-low" in str(event.data)

    async def test_sink_stopped_when_stream_fails(self, endpoint, patch_tcp_client, mock_sink):
        _, client = patch_tcp_client
        client.read_event = AsyncMock(
            side_effect=[AudioStart(rate=22050, width=2, channels=1).event(), ConnectionResetError("reset")]
        )

        with pytest.raises(ConnectionResetError):
            await synthesize_to_sink("hi", endpoint=endpoint, sink=mock_sink)
        mock_sink.stop.assert_awaited_once()
        client.disconnect.assert_awaited_once()
