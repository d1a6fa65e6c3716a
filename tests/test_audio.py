"""Tests for audio tool selection and the playback sink."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cadence.assistant.audio import PlaybackSink, build_player_command, resolve_player


class TestBuildPlayerCommand:
    def test_pw_play(self):
        assert build_player_command("pw-play", 22050, 2, 1) == [
            "pw-play", "--raw", "--rate", "22050", "--channels", "1", "--format", "s16", "-",
        ]  # fmt: skip

    def test_paplay(self):
        cmd = build_player_command("/usr/bin/paplay", 16000, 4, 2)
        assert cmd[0] == "/usr/bin/paplay"
        assert "--format=s32le" in cmd

    def test_aplay(self):
        assert build_player_command("aplay", 16000, 2, 1) == [
            "aplay", "-q", "-t", "raw", "-f", "S16_LE", "-c", "1", "-r", "16000", "-",
        ]  # fmt: skip

    def test_pw_play_with_unsupported_width_uses_aplay(self):
        assert build_player_command("pw-play", 16000, 3, 1)[0] == "aplay"


class TestResolvePlayer:
    def test_preferred_player_available(self, mock_logger):
        with patch("cadence.assistant.audio._player_available", return_value=True):
            assert resolve_player("paplay", mock_logger) == "paplay"
        mock_logger.warning.assert_not_called()

    def test_missing_preferred_player_falls_back(self, mock_logger):
        with patch("cadence.assistant.audio._player_available", side_effect=lambda name: name == "aplay"):
            assert resolve_player("mpv", mock_logger) == "aplay"
        mock_logger.warning.assert_called_once()

    def test_auto_prefers_pipewire(self, mock_logger):
        with patch("cadence.assistant.audio._player_available", return_value=True):
            assert resolve_player("auto", mock_logger) == "pw-play"

    def test_nothing_available(self, mock_logger):
        with patch("cadence.assistant.audio._player_available", return_value=False):
            assert resolve_player("auto", mock_logger) == "aplay"


@pytest.mark.anyio
class TestPlaybackSink:
    async def test_write_requires_start(self):
        with pytest.raises(RuntimeError):
            await PlaybackSink().write(b"\x00")

    async def test_start_write_stop(self, mock_logger):
        proc = MagicMock()
        proc.stdin.drain = AsyncMock()
        proc.stdin.wait_closed = AsyncMock()
        proc.wait = AsyncMock(return_value=0)
        sink = PlaybackSink("aplay", mock_logger)

        with (
            patch("cadence.assistant.audio._player_available", return_value=True),
            patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn,
        ):
            await sink.start(22050, 2, 1)
            await sink.write(b"\x01\x02")
            await sink.stop()

        assert spawn.await_args.args[:2] == ("aplay", "-q")
        proc.stdin.write.assert_called_once_with(b"\x01\x02")
        proc.stdin.close.assert_called_once()
        proc.wait.assert_awaited()
