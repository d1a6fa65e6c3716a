"""MQTT bridge for the interaction orchestrator.

Publishes under ``<topic_base>``:
- ``state``: current interaction state (retained)
- ``response``: JSON description of each spoken reply
- ``error``: JSON error code and message
- ``metrics``: JSON per-interaction stage timings
- ``transcript``: recognized text, only when transcript logging is enabled

and listens on ``<topic_base>/command`` for ``start`` / ``stop`` requests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from datetime import datetime
from typing import Any

from cadence import __version__

from .config import AssistantConfig
from .events import EventKind, InteractionEvents, Unsubscribe
from .models import InteractionResult, InteractionState, Utterance
from .mqtt import InteractionMqtt
from .results import AssistantError

LOGGER = logging.getLogger(__name__)

RemoteAction = Callable[[], Coroutine[Any, Any, Any]]


class InteractionMqttPublisher:
    """Mirror orchestrator events to MQTT and accept remote start/stop commands."""

    def __init__(
        self,
        mqtt: InteractionMqtt,
        config: AssistantConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self.mqtt = mqtt
        self.config = config
        self.logger = logger or LOGGER

        base_topic = self.config.mqtt.topic_base
        self._state_topic = f"{base_topic}/state"
        self._response_topic = f"{base_topic}/response"
        self._error_topic = f"{base_topic}/error"
        self._metrics_topic = f"{base_topic}/metrics"
        self._transcript_topic = f"{base_topic}/transcript"
        self._command_topic = f"{base_topic}/command"

        self._unsubscribers: list[Unsubscribe] = []
        self._remote_actions: dict[str, RemoteAction] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def command_topic(self) -> str:
        return self._command_topic

    # ========================================================================
    # Event channel wiring
    # ========================================================================

    def attach(self, events: InteractionEvents) -> None:
        self._unsubscribers.extend(
            [
                events.subscribe(EventKind.STATE, self.publish_state),
                events.subscribe(EventKind.RESULT, self.publish_response),
                events.subscribe(EventKind.ERROR, self.publish_error),
                events.subscribe(EventKind.METRICS, self.publish_metrics),
                events.subscribe(EventKind.TRANSCRIPT, self.publish_transcript),
            ]
        )

    def detach(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    # ========================================================================
    # Publishing
    # ========================================================================

    def publish_state(self, state: InteractionState) -> None:
        self.mqtt.publish(self._state_topic, state.value, retain=True)

    def publish_response(self, result: InteractionResult) -> None:
        self._publish_json(self._response_topic, result.to_dict())

    def publish_error(self, error: AssistantError) -> None:
        self._publish_json(
            self._error_topic,
            {
                "code": getattr(error, "code", type(error).__name__),
                "message": str(error),
                "habit_id": self.config.habit.habit_id,
                "timestamp": datetime.now().isoformat(),
            },
        )

    def publish_metrics(self, metrics: dict[str, Any]) -> None:
        self._publish_json(self._metrics_topic, {**metrics, "version": __version__})

    def publish_transcript(self, utterance: Utterance) -> None:
        if not self.config.log_transcripts:
            return
        self._publish_json(
            self._transcript_topic,
            {"text": utterance.text, "confidence": utterance.confidence},
        )

    def _publish_json(self, topic: str, payload: dict[str, Any]) -> None:
        try:
            message = json.dumps(payload, default=str)
        except (TypeError, ValueError) as exc:
            self.logger.warning("[mqtt_publisher] Unable to serialize payload for %s: %s", topic, exc)
            return
        self.mqtt.publish(topic, message)

    # ========================================================================
    # Remote control
    # ========================================================================

    def subscribe_commands(
        self,
        loop: asyncio.AbstractEventLoop,
        *,
        start: RemoteAction,
        stop: RemoteAction,
    ) -> None:
        """Route ``start``/``stop`` payloads from the command topic onto ``loop``."""
        self._loop = loop
        self._remote_actions = {"start": start, "stop": stop}
        try:
            self.mqtt.subscribe(self._command_topic, self.handle_command_message)
        except RuntimeError as exc:
            self.logger.debug("[mqtt_publisher] Remote control unavailable: %s", exc)

    def handle_command_message(self, payload: str) -> Future[Any] | None:
        command = _parse_command_payload(payload)
        action = self._remote_actions.get(command) if command else None
        if action is None:
            self.logger.warning("[mqtt_publisher] Ignoring unknown command payload: %r", payload)
            return None
        if self._loop is None:
            self.logger.debug("[mqtt_publisher] No event loop bound; dropping %s command", command)
            return None
        self.logger.info("[mqtt_publisher] Remote %s requested", command)
        future = asyncio.run_coroutine_threadsafe(action(), self._loop)

        def _report(done: Future[Any]) -> None:
            if done.cancelled():
                self.logger.debug("[mqtt_publisher] Remote %s was cancelled", command)
                return
            exc = done.exception()
            if exc is not None:
                self.logger.error("[mqtt_publisher] Remote %s failed: %s", command, exc, exc_info=exc)

        future.add_done_callback(_report)
        return future


def _parse_command_payload(payload: str) -> str | None:
    text = payload.strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        value = data.get("command") if isinstance(data, dict) else None
        return value.strip().lower() if isinstance(value, str) else None
    return text.lower()
