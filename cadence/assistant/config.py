"""Configuration helpers for the Cadence habit assistant."""

from __future__ import annotations

import os
import shlex
import socket
from dataclasses import dataclass
from pathlib import Path

from cadence.utils import parse_bool, parse_float, parse_int, slugify_identifier

from .models import HabitProfile

DEFAULT_HABIT_NAME = "daily habit"
DEFAULT_MIC_COMMAND = "arecord -q -t raw -f S16_LE -c 1 -r 16000 -"
STORE_FILENAME = "habits.json"


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class WyomingEndpoint:
    host: str
    port: int
    model: str | None = None


@dataclass(frozen=True)
class MicConfig:
    command: list[str]
    rate: int
    width: int
    channels: int
    chunk_ms: int
    phrase_seconds: float = 5.0

    @property
    def bytes_per_chunk(self) -> int:
        samples = int(self.rate * (self.chunk_ms / 1000))
        return samples * self.width * self.channels

    @property
    def chunks_per_phrase(self) -> int:
        return max(1, int(self.phrase_seconds * 1000 / max(1, self.chunk_ms)))


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class AssistantConfig:
    hostname: str
    habit: HabitProfile
    data_dir: Path
    language: str | None
    mic: MicConfig
    stt_endpoint: WyomingEndpoint
    tts_endpoint: WyomingEndpoint
    tts_voice: str | None
    wyoming_timeout: float | None
    audio_player: str | None
    mqtt: MqttConfig
    log_transcripts: bool

    @property
    def storage_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AssistantConfig:
        source = env if env is not None else os.environ
        hostname = source.get("CADENCE_HOSTNAME") or socket.gethostname()

        habit_name = _strip_or_none(source.get("CADENCE_HABIT_NAME")) or DEFAULT_HABIT_NAME
        habit_id = _strip_or_none(source.get("CADENCE_HABIT_ID")) or slugify_identifier(habit_name)
        habit = HabitProfile(habit_id=habit_id, habit_name=habit_name)

        data_dir_raw = _strip_or_none(source.get("CADENCE_DATA_DIR"))
        data_dir = Path(data_dir_raw).expanduser() if data_dir_raw else Path.home() / ".local" / "share" / "cadence"

        mic = MicConfig(
            command=shlex.split(source.get("CADENCE_MIC_CMD", DEFAULT_MIC_COMMAND)),
            rate=parse_int(source.get("CADENCE_MIC_RATE"), 16000),
            width=parse_int(source.get("CADENCE_MIC_WIDTH"), 2),
            channels=parse_int(source.get("CADENCE_MIC_CHANNELS"), 1),
            chunk_ms=parse_int(source.get("CADENCE_MIC_CHUNK_MS"), 30),
            phrase_seconds=max(0.5, parse_float(source.get("CADENCE_PHRASE_SECONDS"), 5.0) or 5.0),
        )

        stt_endpoint = WyomingEndpoint(
            host=source.get("WYOMING_WHISPER_HOST", "127.0.0.1"),
            port=parse_int(source.get("WYOMING_WHISPER_PORT"), 10300),
            model=_strip_or_none(source.get("CADENCE_STT_MODEL")),
        )
        tts_endpoint = WyomingEndpoint(
            host=source.get("WYOMING_PIPER_HOST", "127.0.0.1"),
            port=parse_int(source.get("WYOMING_PIPER_PORT"), 10200),
            model=None,
        )

        wyoming_timeout = parse_float(source.get("CADENCE_WYOMING_TIMEOUT"), 30.0)
        if wyoming_timeout is not None and wyoming_timeout <= 0:
            wyoming_timeout = None

        topic_base = source.get("CADENCE_TOPIC_BASE") or f"cadence/{slugify_identifier(hostname)}/assistant"
        mqtt = MqttConfig(
            host=_strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=_strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")),
            password=_strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")),
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=_strip_or_none(source.get("MQTT_CERT")),
            key=_strip_or_none(source.get("MQTT_KEY")),
            ca_cert=_strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        return AssistantConfig(
            hostname=hostname,
            habit=habit,
            data_dir=data_dir,
            language=_strip_or_none(source.get("CADENCE_LANGUAGE")),
            mic=mic,
            stt_endpoint=stt_endpoint,
            tts_endpoint=tts_endpoint,
            tts_voice=_strip_or_none(source.get("CADENCE_TTS_VOICE")),
            wyoming_timeout=wyoming_timeout,
            audio_player=_strip_or_none(source.get("CADENCE_AUDIO_PLAYER")),
            mqtt=mqtt,
            log_transcripts=parse_bool(source.get("CADENCE_LOG_TRANSCRIPTS"), False),
        )
