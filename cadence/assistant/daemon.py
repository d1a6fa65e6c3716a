"""Cadence habit assistant daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from .audio import MicCapture, PlaybackSink
from .command_parser import CommandClassifier
from .config import AssistantConfig
from .models import InteractionResult, InteractionState
from .mqtt import InteractionMqtt
from .mqtt_publisher import InteractionMqttPublisher
from .orchestrator import InteractionOrchestrator
from .speech import (
    ConsoleSpeechInput,
    ConsoleSpeechOutput,
    SpeechInput,
    SpeechOutput,
    WyomingSpeechInput,
    WyomingSpeechOutput,
)
from .storage import JsonHabitStore
from .template_catalog import build_default_catalog
from .template_engine import TemplateEngine

LOGGER = logging.getLogger("cadence-assistant")

ERROR_RETRY_SECONDS = 1.0
_SETTLED_STATES = frozenset({InteractionState.READY, InteractionState.ERROR, InteractionState.IDLE})


class CadenceAssistant:
    """Wire configuration, adapters and the orchestrator into a running assistant.

    In text mode each line typed on stdin is one interaction. In voice mode an
    interaction starts on launch and on every MQTT ``start`` command, or back to back
    when ``continuous`` is set.
    """

    def __init__(
        self,
        config: AssistantConfig,
        *,
        text_mode: bool = False,
        continuous: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.text_mode = text_mode
        self.continuous = continuous
        self.logger = logger or LOGGER

        self.store = JsonHabitStore(config.storage_path)
        self.engine = TemplateEngine(build_default_catalog())
        self.mqtt = InteractionMqtt(config.mqtt)
        self.publisher = InteractionMqttPublisher(self.mqtt, config)

        self._mic: MicCapture | None = None
        self._sink: PlaybackSink | None = None
        self._console_input: ConsoleSpeechInput | None = None
        speech_input: SpeechInput
        speech_output: SpeechOutput
        if text_mode:
            self._console_input = ConsoleSpeechInput()
            speech_input = self._console_input
            speech_output = ConsoleSpeechOutput()
        else:
            self._mic = MicCapture(config.mic)
            self._sink = PlaybackSink(config.audio_player)
            speech_input = WyomingSpeechInput(
                config.stt_endpoint,
                config.mic,
                self._mic.record_phrase,
                language=config.language,
                timeout=config.wyoming_timeout,
            )
            speech_output = WyomingSpeechOutput(
                config.tts_endpoint,
                self._sink,
                voice=config.tts_voice,
                timeout=config.wyoming_timeout,
            )

        self.orchestrator = InteractionOrchestrator(
            classifier=CommandClassifier(),
            engine=self.engine,
            store=self.store,
            speech_input=speech_input,
            speech_output=speech_output,
            habit=config.habit,
        )
        self._settled = asyncio.Event()
        self._shutdown = asyncio.Event()
        self.orchestrator.on_state_changed(self._track_state)
        self.orchestrator.on_interaction_result(self._log_result)

    async def run(self) -> None:
        self.mqtt.connect()
        self.publisher.attach(self.orchestrator.events)
        self.publisher.subscribe_commands(
            asyncio.get_running_loop(),
            start=self.orchestrator.start_interaction,
            stop=self.orchestrator.stop_interaction,
        )
        ready = await self.orchestrator.initialize()
        if not ready.ok:
            self.logger.error("Assistant failed to initialize: %s", ready.message)
            return
        self.logger.info(
            "Cadence ready for '%s' (store=%s, mode=%s)",
            self.config.habit.habit_name,
            self.store.storage_path,
            "text" if self.text_mode else "voice",
        )
        if self.text_mode or self.continuous:
            await self._run_back_to_back()
        else:
            await self.orchestrator.start_interaction()
            await self._shutdown.wait()

    async def shutdown(self) -> None:
        self._shutdown.set()
        await self.orchestrator.close()
        self.publisher.detach()
        self.mqtt.disconnect()
        if self._mic:
            await self._mic.stop()
        if self._sink:
            await self._sink.stop()

    async def _run_back_to_back(self) -> None:
        closed = self._console_input.closed if self._console_input else None
        while not self._shutdown.is_set():
            self._settled.clear()
            started = await self.orchestrator.start_interaction()
            if not started.ok:
                self.logger.warning("Unable to start interaction: %s", started.message)
                await asyncio.sleep(ERROR_RETRY_SECONDS)
                continue
            waiters = [asyncio.ensure_future(self._settled.wait()), asyncio.ensure_future(self._shutdown.wait())]
            if closed is not None:
                waiters.append(asyncio.ensure_future(closed.wait()))
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in waiters:
                    waiter.cancel()
            if closed is not None and closed.is_set():
                self.logger.debug("Console input closed")
                break
            if self.orchestrator.current_state is InteractionState.ERROR and not self.text_mode:
                await asyncio.sleep(ERROR_RETRY_SECONDS)

    def _track_state(self, state: InteractionState) -> None:
        if state in _SETTLED_STATES:
            self._settled.set()

    def _log_result(self, result: InteractionResult) -> None:
        self.logger.info("[%s] %s", result.response_type.value, result.text)


async def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Voice habit assistant")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--text", action="store_true", help="Type commands instead of speaking them")
    parser.add_argument("--continuous", action="store_true", help="Start a new interaction after each reply")
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = AssistantConfig.from_env()
    assistant = CadenceAssistant(config, text_mode=args.text, continuous=args.continuous)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    run_task = asyncio.create_task(assistant.run())
    stop_task = asyncio.create_task(stop_event.wait())
    await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    await assistant.shutdown()
    for task in (run_task, stop_task):
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
