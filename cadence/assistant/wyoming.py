"""Wyoming protocol clients for speech-to-text and text-to-speech."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Protocol

from wyoming.asr import Transcribe, Transcript
from wyoming.audio import AudioChunk, AudioStart, AudioStop
from wyoming.client import AsyncTcpClient
from wyoming.event import Event
from wyoming.tts import Synthesize, SynthesizeVoice

from cadence.utils import await_with_timeout, chunk_bytes

from .config import MicConfig, WyomingEndpoint

LOGGER = logging.getLogger(__name__)


class AudioSink(Protocol):
    async def start(self, rate: int, width: int, channels: int) -> None: ...

    async def write(self, chunk: bytes) -> None: ...

    async def stop(self) -> None: ...


async def transcribe_audio(
    audio_bytes: bytes,
    *,
    endpoint: WyomingEndpoint,
    mic: MicConfig,
    language: str | None = None,
    timeout: float | None = None,
) -> str | None:
    """Stream PCM audio to a Wyoming ASR server and return the transcript text.

    Returns ``None`` when the server closes the connection without a transcript.
    """
    client = AsyncTcpClient(endpoint.host, endpoint.port)
    await await_with_timeout(client.connect(), timeout)
    audio_format = {"rate": mic.rate, "width": mic.width, "channels": mic.channels}
    try:
        await await_with_timeout(
            client.write_event(Transcribe(name=endpoint.model, language=language).event()),
            timeout,
        )
        await await_with_timeout(client.write_event(AudioStart(**audio_format).event()), timeout)
        for chunk in chunk_bytes(audio_bytes, mic.bytes_per_chunk):
            await await_with_timeout(client.write_event(AudioChunk(audio=chunk, **audio_format).event()), timeout)
        await await_with_timeout(client.write_event(AudioStop().event()), timeout)
        while True:
            event = await await_with_timeout(client.read_event(), timeout)
            if event is None:
                LOGGER.debug("[wyoming] ASR connection closed before a transcript arrived")
                return None
            if Transcript.is_type(event.type):
                return Transcript.from_event(event).text
    finally:
        await client.disconnect()


async def synthesize_to_sink(
    text: str,
    *,
    endpoint: WyomingEndpoint,
    sink: AudioSink,
    voice_name: str | None = None,
    timeout: float | None = None,
) -> int:
    """Synthesize ``text`` and stream the audio into ``sink``; returns the number of chunks played."""
    started = False
    chunks = 0
    try:
        stream = tts_event_stream(text, endpoint=endpoint, voice_name=voice_name, timeout=timeout)
        async with aclosing(stream) as events:
            async for event in events:
                if AudioStart.is_type(event.type):
                    audio_start = AudioStart.from_event(event)
                    await sink.start(audio_start.rate, audio_start.width, audio_start.channels)
                    started = True
                elif AudioChunk.is_type(event.type):
                    chunk = AudioChunk.from_event(event)
                    if not started:
                        await sink.start(chunk.rate, chunk.width, chunk.channels)
                        started = True
                    await sink.write(chunk.audio)
                    chunks += 1
                elif AudioStop.is_type(event.type):
                    break
    finally:
        if started:
            await sink.stop()
    return chunks


async def tts_event_stream(
    text: str,
    *,
    endpoint: WyomingEndpoint,
    voice_name: str | None = None,
    timeout: float | None = None,
) -> AsyncIterator[Event]:
    client = AsyncTcpClient(endpoint.host, endpoint.port)
    await await_with_timeout(client.connect(), timeout)
    voice = SynthesizeVoice(name=voice_name) if voice_name else None
    try:
        await await_with_timeout(client.write_event(Synthesize(text=text, voice=voice).event()), timeout)
        while True:
            event = await await_with_timeout(client.read_event(), timeout)
            if event is None:
                break
            yield event
            if AudioStop.is_type(event.type):
                break
    finally:
        await client.disconnect()
