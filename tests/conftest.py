"""Shared test fixtures for the Cadence test suite.

This module provides reusable fixtures for:
- Logger mocking
- MQTT configuration and paho client mocking
- Fake speech input/output adapters that drive the orchestrator's callbacks
- A JSON habit store on a temporary path
- A template engine with a deterministic random source
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from unittest.mock import Mock

import paho.mqtt.client as mqtt
import pytest
from cadence.assistant.command_parser import CommandClassifier
from cadence.assistant.config import MqttConfig
from cadence.assistant.models import HabitProfile, SpeechStatus, Utterance
from cadence.assistant.orchestrator import InteractionOrchestrator
from cadence.assistant.results import AssistantError, Result
from cadence.assistant.storage import JsonHabitStore
from cadence.assistant.template_catalog import build_default_catalog
from cadence.assistant.template_engine import TemplateEngine

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# MQTT Fixtures
# ============================================================================


@pytest.fixture
def mqtt_config():
    """Create a basic MQTT configuration for testing."""
    return MqttConfig(
        host="localhost",
        port=1883,
        username=None,
        password=None,
        tls_enabled=False,
        cert=None,
        key=None,
        ca_cert=None,
        topic_base="cadence/test-device/assistant",
    )


@pytest.fixture
def mock_mqtt_client():
    """Create a mock paho MQTT client."""
    client = Mock(spec=mqtt.Client)
    client.connect = Mock()
    client.disconnect = Mock()
    client.subscribe = Mock(return_value=(mqtt.MQTT_ERR_SUCCESS, 1))
    client.message_callback_add = Mock()
    client.publish = Mock()
    client.will_set = Mock()
    client.loop_start = Mock()
    client.loop_stop = Mock()
    client.is_connected = Mock(return_value=True)
    return client


# ============================================================================
# Speech Fakes
# ============================================================================


class FakeSpeechInput:
    """Speech input whose utterances are pushed by the test via ``say``."""

    def __init__(self, start_result: Result[None] | None = None) -> None:
        self.start_result = start_result or Result.success()
        self.stop_result: Result[None] = Result.success()
        self.start_calls = 0
        self.stop_calls = 0
        self.listening = False
        self.utterance_handler = None
        self.error_handler = None

    @property
    def is_listening(self) -> bool:
        return self.listening

    async def start_listening(self) -> Result[None]:
        self.start_calls += 1
        if self.start_result.ok:
            self.listening = True
        return self.start_result

    async def stop_listening(self) -> Result[None]:
        self.stop_calls += 1
        self.listening = False
        return self.stop_result

    def set_utterance_handler(self, handler) -> None:
        self.utterance_handler = handler

    def set_error_handler(self, handler) -> None:
        self.error_handler = handler

    async def say(self, text: str, *, is_final: bool = True, confidence: float = 0.9) -> None:
        if is_final:
            self.listening = False
        await self.utterance_handler(Utterance(text=text, confidence=confidence, is_final=is_final))

    async def fail(self, error: AssistantError) -> None:
        self.listening = False
        await self.error_handler(error)


class FakeSpeechOutput:
    """Speech output that records spoken text and reports speaking then inactive."""

    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.speak_result: Result[None] = Result.success()
        self.report_error = False
        self.stop_calls = 0
        self.speaking = False
        self.status_handler = None

    @property
    def is_speaking(self) -> bool:
        return self.speaking

    def set_status_handler(self, handler) -> None:
        self.status_handler = handler

    async def speak(self, text: str) -> Result[None]:
        self.spoken.append(text)
        self.speaking = True
        await self.status_handler(SpeechStatus.SPEAKING)
        self.speaking = False
        if self.report_error:
            await self.status_handler(SpeechStatus.ERROR)
            return self.speak_result
        if self.speak_result.ok:
            await self.status_handler(SpeechStatus.INACTIVE)
        return self.speak_result

    async def stop(self) -> Result[None]:
        self.stop_calls += 1
        self.speaking = False
        return Result.success()


# ============================================================================
# Assistant Fixtures
# ============================================================================


FIXED_NOW = datetime(2026, 3, 10, 19, 5)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def habit():
    return HabitProfile(habit_id="workout", habit_name="workout")


@pytest.fixture
def store(tmp_path):
    return JsonHabitStore(tmp_path / "habits.json")


@pytest.fixture
def engine():
    return TemplateEngine(build_default_catalog(), rng=random.Random(7))


@pytest.fixture
def speech_input():
    return FakeSpeechInput()


@pytest.fixture
def speech_output():
    return FakeSpeechOutput()


@pytest.fixture
def orchestrator(engine, store, speech_input, speech_output, habit, fixed_now, mock_logger):
    return InteractionOrchestrator(
        classifier=CommandClassifier(),
        engine=engine,
        store=store,
        speech_input=speech_input,
        speech_output=speech_output,
        habit=habit,
        clock=lambda: fixed_now,
        logger=mock_logger,
    )
