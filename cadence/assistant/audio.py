"""Microphone capture and PCM playback through command-line audio tools."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from asyncio.subprocess import Process

from .config import MicConfig

_PLAYER_CANDIDATES = ("pw-play", "paplay", "aplay")


class MicCapture:
    """Record fixed-length phrases by shelling out to ``arecord`` (or the configured command)."""

    def __init__(self, mic: MicConfig, logger: logging.Logger | None = None) -> None:
        self.mic = mic
        self._proc: Process | None = None
        self._logger = logger or logging.getLogger(__name__)

    @property
    def active(self) -> bool:
        return self._proc is not None

    async def record_phrase(self) -> bytes:
        """Capture ``mic.phrase_seconds`` of audio; returns what was read if stopped early."""
        await self._start()
        buffer = bytearray()
        try:
            for _ in range(self.mic.chunks_per_phrase):
                chunk = await self._read_chunk()
                if not chunk:
                    break
                buffer.extend(chunk)
        finally:
            await self.stop()
        return bytes(buffer)

    async def stop(self) -> None:
        proc = self._proc
        if not proc:
            return
        self._proc = None
        self._logger.debug("[audio] Stopping microphone capture")
        if proc.returncode is None:
            proc.terminate()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(proc.wait(), timeout=2)

    async def _start(self) -> None:
        if self._proc:
            return
        self._logger.debug("[audio] Starting microphone capture: %s", " ".join(self.mic.command))
        self._proc = await asyncio.create_subprocess_exec(
            *self.mic.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _read_chunk(self) -> bytes:
        proc = self._proc
        if not proc or not proc.stdout:
            return b""
        try:
            return await proc.stdout.readexactly(self.mic.bytes_per_chunk)
        except asyncio.IncompleteReadError as exc:
            if proc.stderr:
                stderr = (await proc.stderr.read()).decode("utf-8", errors="ignore").strip()
                if stderr:
                    self._logger.warning("[audio] Microphone stream ended: %s", stderr)
            return exc.partial


class PlaybackSink:
    """Stream raw PCM into ``pw-play``, ``paplay`` or ``aplay``."""

    def __init__(self, binary: str | None = None, logger: logging.Logger | None = None) -> None:
        self.binary = binary or "auto"
        self._proc: Process | None = None
        self._logger = logger or logging.getLogger(__name__)

    async def start(self, rate: int, width: int, channels: int) -> None:
        await self.stop()
        player = resolve_player(self.binary, self._logger)
        cmd = build_player_command(player, rate, width, channels)
        self._logger.debug("[audio] Starting playback: %s", " ".join(cmd))
        self._proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

    async def write(self, chunk: bytes) -> None:
        if not self._proc or not self._proc.stdin:
            raise RuntimeError("Playback is not active")
        try:
            self._proc.stdin.write(chunk)
            await self._proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            await self.stop()
            raise RuntimeError("Playback process exited unexpectedly") from exc

    async def stop(self) -> None:
        proc = self._proc
        if not proc:
            return
        self._proc = None
        if proc.stdin:
            proc.stdin.close()
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await proc.stdin.wait_closed()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(proc.wait(), timeout=2)


def resolve_player(preferred: str, logger: logging.Logger) -> str:
    if preferred != "auto":
        if _player_available(preferred):
            return preferred
        logger.warning("[audio] Requested audio player '%s' not found; falling back to auto-detection", preferred)
    for candidate in _PLAYER_CANDIDATES:
        if _player_available(candidate):
            return candidate
    return "aplay"


def build_player_command(player: str, rate: int, width: int, channels: int) -> list[str]:
    name = os.path.basename(player)
    if name == "pw-play" and width in (1, 2, 4):
        fmt = {1: "s8", 2: "s16", 4: "s32"}[width]
        return [player, "--raw", "--rate", str(rate), "--channels", str(channels), "--format", fmt, "-"]
    if name == "paplay":
        fmt = {1: "s8", 2: "s16le", 3: "s24le", 4: "s32le"}.get(width, "s16le")
        return [player, "--raw", "--rate", str(rate), "--channels", str(channels), f"--format={fmt}", "-"]
    fmt = {1: "U8", 2: "S16_LE", 3: "S24_LE", 4: "S32_LE"}.get(width, "S16_LE")
    aplay = player if name == "aplay" else "aplay"
    return [aplay, "-q", "-t", "raw", "-f", fmt, "-c", str(channels), "-r", str(rate), "-"]


def _player_available(binary: str) -> bool:
    if os.path.isabs(binary):
        return os.access(binary, os.X_OK)
    return shutil.which(binary) is not None
