"""Interaction orchestrator: listen, classify, act on the habit store and respond.

One orchestrator runs at most one interaction at a time. All collaborator calls are
awaited on the event loop that owns the orchestrator; speech adapters call back into
it through the handlers registered in :meth:`InteractionOrchestrator.initialize`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar, assert_never

from cadence.datetime_utils import calendar_day, format_clock_time, is_same_day, start_of_day, time_of_day_bucket
from cadence.utils import new_identifier

from .command_parser import CommandClassifier
from .events import EventKind, InteractionEvents, Subscriber, Unsubscribe
from .models import (
    Command,
    CommandType,
    HabitCompletion,
    HabitProfile,
    InteractionResult,
    InteractionSession,
    InteractionState,
    ResponseContext,
    ResponseType,
    SessionEvent,
    SessionEventType,
    SpeechStatus,
    Utterance,
)
from .results import AssistantError, InvalidStateError, PersistenceError, Result, SpeechIOError
from .speech import SpeechInput, SpeechOutput
from .storage import HabitStore
from .streaks import update_with_completion
from .template_engine import TemplateEngine

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_WINDOW_DAYS = 7
SUGGESTED_PHRASES = ("I did it", "what's my streak", "how am I doing", "help")

_BUSY_STATES = frozenset({InteractionState.LISTENING, InteractionState.PROCESSING, InteractionState.RESPONDING})
_STAGE_FOR_STATE = {
    InteractionState.LISTENING: "listening",
    InteractionState.PROCESSING: "processing",
    InteractionState.RESPONDING: "responding",
}


@dataclass
class InteractionRunTracker:
    session_id: str
    habit_id: str
    start: float = field(default_factory=time.monotonic)
    stage_start: float = field(default_factory=time.monotonic)
    current_stage: str | None = None
    stage_durations: dict[str, int] = field(default_factory=dict)
    command: str | None = None

    def begin_stage(self, stage: str) -> None:
        now = time.monotonic()
        if self.current_stage:
            self.stage_durations[self.current_stage] = int((now - self.stage_start) * 1000)
        self.current_stage = stage
        self.stage_start = now

    def finalize(self, status: str) -> dict[str, object]:
        now = time.monotonic()
        if self.current_stage:
            self.stage_durations[self.current_stage] = int((now - self.stage_start) * 1000)
            self.current_stage = None
        return {
            "session_id": self.session_id,
            "habit_id": self.habit_id,
            "command": self.command,
            "status": status,
            "total_ms": int((now - self.start) * 1000),
            "stages": dict(self.stage_durations),
        }


class InteractionOrchestrator:
    """Drive one voice interaction through IDLE, READY, LISTENING, PROCESSING and RESPONDING.

    Failures from any collaborator (returned as a failed ``Result`` or raised) end in
    the ERROR state after subscribers are notified and a generic apology is attempted.
    ERROR is only left through an explicit ``start_interaction()`` or ``stop_interaction()``.
    """

    def __init__(
        self,
        *,
        classifier: CommandClassifier,
        engine: TemplateEngine,
        store: HabitStore,
        speech_input: SpeechInput,
        speech_output: SpeechOutput,
        habit: HabitProfile,
        events: InteractionEvents | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.classifier = classifier
        self.engine = engine
        self.store = store
        self.speech_input = speech_input
        self.speech_output = speech_output
        self.habit = habit
        self.events = events or InteractionEvents()
        self._clock = clock or datetime.now
        self.logger = logger or LOGGER

        self._state = InteractionState.IDLE
        self._initialized = False
        self._session: InteractionSession | None = None
        self._tracker: InteractionRunTracker | None = None
        self._apologizing = False
        self._stopping = False

    # ========================================================================
    # Subscriptions
    # ========================================================================

    def on_state_changed(self, callback: Subscriber) -> Unsubscribe:
        return self.events.subscribe(EventKind.STATE, callback)

    def on_interaction_result(self, callback: Subscriber) -> Unsubscribe:
        return self.events.subscribe(EventKind.RESULT, callback)

    def on_error(self, callback: Subscriber) -> Unsubscribe:
        return self.events.subscribe(EventKind.ERROR, callback)

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def current_state(self) -> InteractionState:
        return self._state

    def session_info(self) -> dict[str, Any] | None:
        session = self._session
        if session is None:
            return None
        return {
            "session_id": session.id,
            "start_time": session.start_time.isoformat(),
            "state": self._state.value,
            "event_count": len(session),
            "habit_id": self.habit.habit_id,
        }

    def session_events(self) -> list[SessionEvent]:
        return list(self._session.events) if self._session else []

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> Result[None]:
        if self._initialized:
            return Result.success()
        engine_ready = self.engine.initialize()
        if not engine_ready.ok:
            self.logger.error("[orchestrator] Template engine failed to initialize: %s", engine_ready.message)
            return engine_ready
        self.speech_input.set_utterance_handler(self._handle_utterance)
        self.speech_input.set_error_handler(self._handle_input_error)
        self.speech_output.set_status_handler(self._handle_speech_status)
        self._initialized = True
        await self._set_state(InteractionState.READY)
        return Result.success()

    async def start_interaction(self) -> Result[None]:
        if self._state in _BUSY_STATES:
            self.logger.debug("[orchestrator] Ignoring start while %s", self._state)
            return Result.failure(InvalidStateError(f"Cannot start an interaction while {self._state.value}"))
        if not self._initialized:
            ready = await self.initialize()
            if not ready.ok:
                return ready

        session = InteractionSession(id=new_identifier("session"), start_time=self._clock())
        session.append(SessionEventType.SESSION_STARTED, "Interaction started", timestamp=session.start_time)
        self._session = session
        self._tracker = InteractionRunTracker(session_id=session.id, habit_id=self.habit.habit_id)
        self.logger.debug("[orchestrator] Session %s started", session.id)

        try:
            listening = await self.speech_input.start_listening()
        except Exception as exc:
            listening = Result.failure(_as_assistant_error(exc, "Speech input failed to start", SpeechIOError))
        if not listening.ok:
            await self._fail(listening.error)  # type: ignore[arg-type]
            return listening
        await self._set_state(InteractionState.LISTENING)
        return Result.success()

    async def stop_interaction(self) -> Result[None]:
        self._stopping = True
        first_failure: AssistantError | None = None
        try:
            if self.speech_input.is_listening:
                first_failure = await self._collect_failure(self.speech_input.stop_listening(), first_failure)
            if self.speech_output.is_speaking:
                first_failure = await self._collect_failure(self.speech_output.stop(), first_failure)
            if self._session is not None:
                self._record(SessionEventType.SESSION_ENDED, "Interaction stopped")
            if self._tracker is not None:
                await self._emit_metrics("cancelled")
            await self._set_state(InteractionState.IDLE)
            self._session = None
        finally:
            self._stopping = False
        if first_failure is not None:
            self.logger.warning("[orchestrator] Stop completed with failure: %s", first_failure)
            return Result.failure(first_failure)
        return Result.success()

    async def close(self) -> None:
        await self.stop_interaction()
        self.speech_input.set_utterance_handler(None)
        self.speech_input.set_error_handler(None)
        self.speech_output.set_status_handler(None)
        self.events.clear()
        self._initialized = False

    async def _collect_failure(
        self,
        call: Awaitable[Result[None]],
        first_failure: AssistantError | None,
    ) -> AssistantError | None:
        try:
            outcome = await call
        except Exception as exc:
            outcome = Result.failure(_as_assistant_error(exc, "Speech adapter failed to stop", SpeechIOError))
        if outcome.ok or first_failure is not None:
            return first_failure
        return outcome.error

    # ========================================================================
    # Speech callbacks
    # ========================================================================

    async def _handle_utterance(self, utterance: Utterance) -> None:
        session = self._session
        if self._state is not InteractionState.LISTENING or session is None:
            self.logger.debug("[orchestrator] Ignoring utterance while %s", self._state)
            return
        if not utterance.is_final:
            self._record(
                SessionEventType.SPEECH_INTERMEDIATE,
                "Partial speech",
                metadata={"text": utterance.text, "confidence": utterance.confidence},
            )
            return

        self._record(
            SessionEventType.SPEECH_RECOGNIZED,
            "Speech recognized",
            metadata={"text": utterance.text, "confidence": utterance.confidence},
        )
        await self.events.emit(EventKind.TRANSCRIPT, utterance)
        await self._set_state(InteractionState.PROCESSING)

        try:
            outcome = await self._process(utterance.text)
        except Exception as exc:
            self.logger.exception("[orchestrator] Processing raised")
            outcome = Result.failure(_as_assistant_error(exc, "Processing failed"))
        if self._session is not session:
            self.logger.debug("[orchestrator] Session %s ended during processing", session.id)
            return
        if not outcome.ok:
            await self._fail(outcome.error)  # type: ignore[arg-type]
            return

        command, context, text = outcome.unwrap()
        self._record(
            SessionEventType.RESPONSE_GENERATED,
            "Response generated",
            metadata={"response_type": context.response_type.value, "text": text},
        )
        await self._set_state(InteractionState.RESPONDING)
        await self.events.emit(
            EventKind.RESULT,
            InteractionResult(
                session_id=session.id,
                command=command,
                response_type=context.response_type,
                text=text,
                timestamp=context.timestamp,
            ),
        )

        try:
            spoken = await self.speech_output.speak(text)
        except Exception as exc:
            spoken = Result.failure(_as_assistant_error(exc, "Speech output failed", SpeechIOError))
        # a status error reported during playback has already been handled
        if self._session is not session or self._state is InteractionState.ERROR:
            return
        if not spoken.ok:
            await self._fail(spoken.error)  # type: ignore[arg-type]
            return
        self._record(SessionEventType.RESPONSE_SPOKEN, "Response spoken")

    async def _handle_input_error(self, error: AssistantError) -> None:
        if self._state is not InteractionState.LISTENING:
            self.logger.debug("[orchestrator] Ignoring speech input error while %s: %s", self._state, error)
            return
        await self._fail(error)

    async def _handle_speech_status(self, status: SpeechStatus) -> None:
        self._record(SessionEventType.SPEECH_STATUS_CHANGED, f"Speech output {status.value}")
        if self._apologizing or self._stopping:
            return
        match status:
            case SpeechStatus.SPEAKING:
                pass
            case SpeechStatus.INACTIVE:
                if self._state is InteractionState.RESPONDING:
                    await self._set_state(InteractionState.READY)
                    await self._emit_metrics("success")
            case SpeechStatus.ERROR:
                if self._state is InteractionState.RESPONDING:
                    await self._fail(SpeechIOError("Speech output reported an error"))
            case _:
                assert_never(status)

    # ========================================================================
    # Command handling
    # ========================================================================

    async def _process(self, text: str) -> Result[tuple[Command, ResponseContext, str]]:
        parsed = self.classifier.parse_command(text)
        if not parsed.ok:
            return Result.failure(parsed.error)  # type: ignore[arg-type]
        command = parsed.unwrap()
        if self._tracker is not None:
            self._tracker.command = command.type.value
        self._record(
            SessionEventType.COMMAND_PARSED,
            f"Command parsed: {command.type.value}",
            metadata={"command": command.type.value, "confidence": command.confidence},
        )
        self.logger.info(
            "[orchestrator] %r -> %s (confidence %.2f)",
            command.original_text,
            command.type.value,
            command.confidence,
        )

        built = await self._build_response(command)
        if not built.ok:
            return Result.failure(built.error)  # type: ignore[arg-type]
        context = built.unwrap()
        rendered = self.engine.get_response(context)
        if not rendered.ok:
            return Result.failure(rendered.error)  # type: ignore[arg-type]
        return Result.success((command, context, rendered.unwrap()))

    async def _build_response(self, command: Command) -> Result[ResponseContext]:
        match command.type:
            case CommandType.COMPLETE_HABIT:
                return await self._complete_habit(command)
            case CommandType.CHECK_STREAK:
                return await self._check_streak()
            case CommandType.HABIT_STATUS:
                return await self._habit_status()
            case CommandType.HELP:
                response_type = (
                    ResponseType.HELP_VOICE_COMMANDS
                    if command.parameters.get("topic") == "commands"
                    else ResponseType.HELP_GENERAL
                )
                return Result.success(self._context(response_type, {}))
            case CommandType.UNKNOWN:
                return Result.success(
                    self._context(
                        ResponseType.COMMAND_NOT_UNDERSTOOD,
                        {
                            "originalText": command.original_text,
                            "confidence": command.confidence,
                            "suggestions": list(SUGGESTED_PHRASES),
                        },
                    )
                )
            case _:
                assert_never(command.type)

    async def _complete_habit(self, command: Command) -> Result[ResponseContext]:
        now = self._clock()
        completion = HabitCompletion(
            id=new_identifier("completion"),
            habit_id=self.habit.habit_id,
            habit_name=self.habit.habit_name,
            completed_at=now,
            metadata={
                "source": "voice",
                "original_text": command.original_text,
                "confidence": command.confidence,
            },
        )
        saved = await self._from_store(self.store.save_completion(completion))
        if not saved.ok:
            return Result.failure(saved.error)  # type: ignore[arg-type]
        loaded = await self._from_store(self.store.get_streak_record(self.habit.habit_id))
        if not loaded.ok:
            return Result.failure(loaded.error)  # type: ignore[arg-type]
        previous = loaded.unwrap()
        updated = update_with_completion(previous, now, now=now)
        written = await self._from_store(self.store.update_streak_record(updated))
        if not written.ok:
            return Result.failure(written.error)  # type: ignore[arg-type]
        reloaded = await self._from_store(self.store.get_streak_record(self.habit.habit_id))
        if not reloaded.ok:
            return Result.failure(reloaded.error)  # type: ignore[arg-type]
        record = reloaded.unwrap()
        return Result.success(
            self._context(
                ResponseType.HABIT_COMPLETED,
                {
                    "habitName": self.habit.habit_name,
                    "streakCount": record.current_streak,
                    "longestStreak": record.longest_streak,
                    "totalCompletions": record.total_completions,
                    "completionTime": format_clock_time(now),
                    "isNewRecord": record.current_streak > previous.longest_streak,
                },
                timestamp=now,
            )
        )

    async def _check_streak(self) -> Result[ResponseContext]:
        loaded = await self._from_store(self.store.get_streak_record(self.habit.habit_id))
        if not loaded.ok:
            return Result.failure(loaded.error)  # type: ignore[arg-type]
        record = loaded.unwrap()
        variables: dict[str, Any] = {
            "habitName": self.habit.habit_name,
            "streakCount": record.current_streak,
            "longestStreak": record.longest_streak,
            "totalCompletions": record.total_completions,
        }
        if record.last_completion_date is not None:
            variables["lastCompletion"] = record.last_completion_date
        if record.current_streak_start_date is not None:
            variables["streakStartDate"] = record.current_streak_start_date
        return Result.success(self._context(ResponseType.STREAK_UPDATE, variables))

    async def _habit_status(self) -> Result[ResponseContext]:
        now = self._clock()
        window_start = start_of_day(now - timedelta(days=STATUS_WINDOW_DAYS - 1))
        completions = await self._from_store(self.store.get_completions(window_start, now, self.habit.habit_id))
        if not completions.ok:
            return Result.failure(completions.error)  # type: ignore[arg-type]
        loaded = await self._from_store(self.store.get_streak_record(self.habit.habit_id))
        if not loaded.ok:
            return Result.failure(loaded.error)  # type: ignore[arg-type]
        entries = completions.unwrap()
        completed_days = {calendar_day(entry.completed_at) for entry in entries}
        return Result.success(
            self._context(
                ResponseType.PROGRESS_REPORT,
                {
                    "habitName": self.habit.habit_name,
                    "completedToday": any(is_same_day(entry.completed_at, now) for entry in entries),
                    "streakCount": loaded.unwrap().current_streak,
                    "timeOfDay": time_of_day_bucket(now),
                    "completedDays": len(completed_days),
                    "totalDays": STATUS_WINDOW_DAYS,
                },
                timestamp=now,
            )
        )

    def _context(
        self,
        response_type: ResponseType,
        variables: dict[str, Any],
        *,
        timestamp: datetime | None = None,
    ) -> ResponseContext:
        return ResponseContext(
            response_type=response_type,
            variables=variables,
            timestamp=timestamp or self._clock(),
            metadata={"session_id": self._session.id if self._session else None},
        )

    # ========================================================================
    # State and failures
    # ========================================================================

    async def _set_state(self, state: InteractionState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        self._record(
            SessionEventType.STATE_CHANGED,
            f"{previous.value} -> {state.value}",
            metadata={"previous": previous.value, "current": state.value},
        )
        self.logger.debug("[orchestrator] State %s -> %s", previous.value, state.value)
        stage = _STAGE_FOR_STATE.get(state)
        if stage and self._tracker is not None:
            self._tracker.begin_stage(stage)
        await self.events.emit(EventKind.STATE, state)

    async def _fail(self, error: AssistantError) -> None:
        self.logger.warning("[orchestrator] Interaction failed (%s): %s", error.code, error)
        self._record(SessionEventType.ERROR, str(error), metadata={"code": error.code})
        await self.events.emit(EventKind.ERROR, error)

        apology = self.engine.get_random_response(ResponseType.ERROR_GENERIC)
        if apology.ok:
            self._apologizing = True
            try:
                await self.speech_output.speak(apology.unwrap())
            except Exception as exc:
                self.logger.debug("[orchestrator] Apology could not be spoken: %s", exc)
            finally:
                self._apologizing = False

        await self._set_state(InteractionState.ERROR)
        await self._emit_metrics("error")

    async def _emit_metrics(self, status: str) -> None:
        tracker = self._tracker
        if tracker is None:
            return
        self._tracker = None
        await self.events.emit(EventKind.METRICS, tracker.finalize(status))

    async def _from_store(self, call: Awaitable[Result[T]]) -> Result[T]:
        try:
            return await call
        except Exception as exc:
            self.logger.exception("[orchestrator] Habit store raised")
            return Result.failure(_as_assistant_error(exc, "Habit store failed", PersistenceError))

    def _record(
        self,
        event_type: SessionEventType,
        description: str,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self._session is None:
            return
        self._session.append(event_type, description, timestamp=self._clock(), metadata=metadata)


def _as_assistant_error(
    exc: Exception,
    context: str,
    error_type: type[AssistantError] = AssistantError,
) -> AssistantError:
    if isinstance(exc, AssistantError):
        return exc
    return error_type(f"{context}: {exc}")
