"""Speech input/output protocols and their Wyoming and console adapters.

Adapters report through async callbacks registered by the orchestrator:

- speech input hands each recognized :class:`Utterance` to the utterance handler
  and transport failures to the error handler
- speech output reports ``speaking`` when playback begins, then ``inactive`` when it
  finishes or is stopped (``error`` if synthesis fails)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Protocol, TextIO

from .config import MicConfig, WyomingEndpoint
from .models import SpeechStatus, Utterance
from .results import AssistantError, Result, SpeechIOError
from .wyoming import AudioSink, synthesize_to_sink, transcribe_audio

LOGGER = logging.getLogger(__name__)

UtteranceHandler = Callable[[Utterance], Awaitable[None]]
StatusHandler = Callable[[SpeechStatus], Awaitable[None]]
ErrorHandler = Callable[[AssistantError], Awaitable[None]]
AudioCapture = Callable[[], Awaitable[bytes]]
LineReader = Callable[[], Awaitable[str | None]]


class SpeechInput(Protocol):
    @property
    def is_listening(self) -> bool: ...

    async def start_listening(self) -> Result[None]: ...

    async def stop_listening(self) -> Result[None]: ...

    def set_utterance_handler(self, handler: UtteranceHandler | None) -> None: ...

    def set_error_handler(self, handler: ErrorHandler | None) -> None: ...


class SpeechOutput(Protocol):
    @property
    def is_speaking(self) -> bool: ...

    async def speak(self, text: str) -> Result[None]: ...

    async def stop(self) -> Result[None]: ...

    def set_status_handler(self, handler: StatusHandler | None) -> None: ...


class _ListenerBase:
    """Runs one background listen task at a time and forwards its outcome."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._utterance_handler: UtteranceHandler | None = None
        self._error_handler: ErrorHandler | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_listening(self) -> bool:
        return self._task is not None

    def set_utterance_handler(self, handler: UtteranceHandler | None) -> None:
        self._utterance_handler = handler

    def set_error_handler(self, handler: ErrorHandler | None) -> None:
        self._error_handler = handler

    async def start_listening(self) -> Result[None]:
        if self._task is not None:
            return Result.success()
        self._task = asyncio.create_task(self._listen_once())
        return Result.success()

    async def stop_listening(self) -> Result[None]:
        task = self._task
        self._task = None
        if task is None:
            return Result.success()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        return Result.success()

    async def _listen_once(self) -> None:
        try:
            utterance = await self._capture_utterance()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._task = None
            self._logger.warning("[speech] Listening failed: %s", exc)
            if self._error_handler:
                error = exc if isinstance(exc, AssistantError) else SpeechIOError(f"Speech recognition failed: {exc}")
                await self._error_handler(error)
            return
        # once an utterance exists the listen phase is over; stop_listening must not cancel its handling
        self._task = None
        if utterance is not None and self._utterance_handler:
            await self._utterance_handler(utterance)

    async def _capture_utterance(self) -> Utterance | None:
        raise NotImplementedError


class _SpeakerBase:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._status_handler: StatusHandler | None = None
        self._speaking = False

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def set_status_handler(self, handler: StatusHandler | None) -> None:
        self._status_handler = handler

    async def _report(self, status: SpeechStatus) -> None:
        if self._status_handler:
            await self._status_handler(status)


# ============================================================================
# Wyoming adapters
# ============================================================================


class WyomingSpeechInput(_ListenerBase):
    """Capture one phrase and transcribe it through a Wyoming ASR server."""

    def __init__(
        self,
        endpoint: WyomingEndpoint,
        audio: MicConfig,
        capture: AudioCapture,
        *,
        language: str | None = None,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self.endpoint = endpoint
        self.audio = audio
        self._capture = capture
        self._language = language
        self._timeout = timeout

    async def _capture_utterance(self) -> Utterance:
        audio_bytes = await self._capture()
        if not audio_bytes:
            self._logger.debug("[speech] No audio captured")
            return Utterance(text="", confidence=0.0)
        try:
            text = await transcribe_audio(
                audio_bytes,
                endpoint=self.endpoint,
                mic=self.audio,
                language=self._language,
                timeout=self._timeout,
            )
        except (OSError, TimeoutError) as exc:
            raise SpeechIOError(f"Wyoming ASR at {self.endpoint.host}:{self.endpoint.port} failed: {exc}") from exc
        text = (text or "").strip()
        return Utterance(text=text, confidence=1.0 if text else 0.0)


class WyomingSpeechOutput(_SpeakerBase):
    """Synthesize replies through a Wyoming TTS server into an audio sink."""

    def __init__(
        self,
        endpoint: WyomingEndpoint,
        sink: AudioSink,
        *,
        voice: str | None = None,
        timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self.endpoint = endpoint
        self.sink = sink
        self.voice = voice
        self._timeout = timeout
        self._playback: asyncio.Task[int] | None = None

    async def speak(self, text: str) -> Result[None]:
        await self.stop()
        self._speaking = True
        await self._report(SpeechStatus.SPEAKING)
        self._playback = asyncio.create_task(
            synthesize_to_sink(
                text,
                endpoint=self.endpoint,
                sink=self.sink,
                voice_name=self.voice,
                timeout=self._timeout,
            )
        )
        try:
            chunks = await self._playback
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            self._logger.debug("[speech] Playback stopped")
        except Exception as exc:
            self._speaking = False
            self._playback = None
            self._logger.warning("[speech] Speech synthesis failed: %s", exc)
            await self._report(SpeechStatus.ERROR)
            return Result.failure(SpeechIOError(f"Speech synthesis failed: {exc}"))
        else:
            self._logger.debug("[speech] Played %d audio chunks", chunks)
        self._speaking = False
        self._playback = None
        await self._report(SpeechStatus.INACTIVE)
        return Result.success()

    async def stop(self) -> Result[None]:
        playback = self._playback
        if playback is None or playback.done():
            return Result.success()
        playback.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await playback
        return Result.success()


# ============================================================================
# Console adapters
# ============================================================================


async def _read_stdin_line() -> str | None:
    line = await asyncio.to_thread(sys.stdin.readline)
    return line if line else None


class ConsoleSpeechInput(_ListenerBase):
    """Read utterances as lines of text; end of input sets :attr:`closed`."""

    def __init__(
        self,
        reader: LineReader | None = None,
        *,
        prompt: str = "you> ",
        stream: TextIO | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self._reader = reader or _read_stdin_line
        self._prompt = prompt
        self._stream = stream or sys.stdout
        self.closed = asyncio.Event()

    async def _capture_utterance(self) -> Utterance | None:
        if self._prompt:
            self._stream.write(self._prompt)
            self._stream.flush()
        line = await self._reader()
        if line is None:
            self.closed.set()
            return None
        return Utterance(text=line.strip())


class ConsoleSpeechOutput(_SpeakerBase):
    """Print replies instead of speaking them."""

    def __init__(
        self,
        *,
        prefix: str = "assistant> ",
        stream: TextIO | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self._prefix = prefix
        self._stream = stream or sys.stdout

    async def speak(self, text: str) -> Result[None]:
        self._speaking = True
        await self._report(SpeechStatus.SPEAKING)
        try:
            self._stream.write(f"{self._prefix}{text}\n")
            self._stream.flush()
        except OSError as exc:
            self._speaking = False
            await self._report(SpeechStatus.ERROR)
            return Result.failure(SpeechIOError(f"Unable to write reply: {exc}"))
        self._speaking = False
        await self._report(SpeechStatus.INACTIVE)
        return Result.success()

    async def stop(self) -> Result[None]:
        return Result.success()
