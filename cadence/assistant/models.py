"""Data model shared by the classifier, template engine, streak logic and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any


def _serialize_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _deserialize_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class CommandType(StrEnum):
    COMPLETE_HABIT = "completeHabit"
    CHECK_STREAK = "checkStreak"
    HABIT_STATUS = "habitStatus"
    HELP = "help"
    UNKNOWN = "unknown"


class ResponseType(StrEnum):
    # Acknowledgments
    CONFIRMATION_POSITIVE = "confirmationPositive"
    CONFIRMATION_NEGATIVE = "confirmationNegative"
    ACKNOWLEDGED = "acknowledged"
    # Habit
    HABIT_COMPLETED = "habitCompleted"
    HABIT_REMINDER = "habitReminder"
    HABIT_STREAK = "habitStreak"
    HABIT_MOTIVATION = "habitMotivation"
    HABIT_PROGRESS = "habitProgress"
    # Status
    STREAK_UPDATE = "streakUpdate"
    PROGRESS_REPORT = "progressReport"
    DAILY_SUMMARY = "dailySummary"
    WEEKLY_REPORT = "weeklyReport"
    # Errors and help
    COMMAND_NOT_UNDERSTOOD = "commandNotUnderstood"
    HELP_GENERAL = "helpGeneral"
    HELP_VOICE_COMMANDS = "helpVoiceCommands"
    ERROR_GENERIC = "errorGeneric"
    ERROR_PERMISSION = "errorPermission"
    ERROR_NETWORK = "errorNetwork"
    # Conversation
    GREETING = "greeting"
    GOODBYE = "goodbye"
    CONVERSATION_STARTER = "conversationStarter"
    ENCOURAGEMENT = "encouragement"
    # System
    SYSTEM_READY = "systemReady"
    SYSTEM_BUSY = "systemBusy"
    SYSTEM_ERROR = "systemError"
    PERMISSION_REQUEST = "permissionRequest"
    # Context-specific
    FIRST_TIME_USER = "firstTimeUser"
    RETURNING_USER = "returningUser"
    ACHIEVEMENT_UNLOCKED = "achievementUnlocked"
    MILESTONE = "milestone"


class InteractionState(StrEnum):
    IDLE = "idle"
    READY = "ready"
    LISTENING = "listening"
    PROCESSING = "processing"
    RESPONDING = "responding"
    ERROR = "error"


class SessionEventType(StrEnum):
    SESSION_STARTED = "sessionStarted"
    SESSION_ENDED = "sessionEnded"
    STATE_CHANGED = "stateChanged"
    SPEECH_RECOGNIZED = "speechRecognized"
    SPEECH_INTERMEDIATE = "speechIntermediate"
    COMMAND_PARSED = "commandParsed"
    RESPONSE_GENERATED = "responseGenerated"
    RESPONSE_SPOKEN = "responseSpoken"
    SPEECH_STATUS_CHANGED = "speechStatusChanged"
    ERROR = "error"


class SpeechStatus(StrEnum):
    SPEAKING = "speaking"
    INACTIVE = "inactive"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Utterance:
    """One speech-recognition result."""

    text: str
    confidence: float = 1.0
    is_final: bool = True


@dataclass(frozen=True, slots=True)
class Command:
    """A classified intent with extracted parameters."""

    type: CommandType
    original_text: str
    parameters: dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class Template:
    id: str
    body: str
    required_vars: tuple[str, ...] = ()
    optional_vars: tuple[str, ...] = ()
    weight: int = 1
    tags: tuple[str, ...] = ()

    def can_render(self, variables: dict[str, Any]) -> bool:
        """A template is usable when every required variable key is present."""
        return all(name in variables for name in self.required_vars)

    def missing_vars(self, variables: dict[str, Any]) -> list[str]:
        return [name for name in self.required_vars if name not in variables]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "body": self.body,
            "required_vars": list(self.required_vars),
            "optional_vars": list(self.optional_vars),
            "weight": self.weight,
            "tags": list(self.tags),
        }


@dataclass(frozen=True, slots=True)
class ResponseContext:
    response_type: ResponseType
    variables: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    user_id: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def now(
        cls,
        response_type: ResponseType,
        variables: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ResponseContext:
        return cls(
            response_type=response_type,
            variables=dict(variables or {}),
            timestamp=datetime.now(),
            user_id=user_id,
            metadata=metadata,
        )

    def with_variables(self, additional: dict[str, Any]) -> ResponseContext:
        return replace(self, variables={**self.variables, **additional})

    def to_dict(self) -> dict[str, Any]:
        return {
            "response_type": self.response_type.value,
            "variables": self.variables,
            "timestamp": _serialize_dt(self.timestamp),
            "user_id": self.user_id,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class StreakRecord:
    """Per-habit consecutive-day counters."""

    habit_id: str
    current_streak: int = 0
    longest_streak: int = 0
    current_streak_start_date: datetime | None = None
    last_completion_date: datetime | None = None
    total_completions: int = 0
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "current_streak_start_date": _serialize_dt(self.current_streak_start_date),
            "last_completion_date": _serialize_dt(self.last_completion_date),
            "total_completions": self.total_completions,
            "last_updated": _serialize_dt(self.last_updated),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> StreakRecord:
        return cls(
            habit_id=payload["habit_id"],
            current_streak=int(payload.get("current_streak") or 0),
            longest_streak=int(payload.get("longest_streak") or 0),
            current_streak_start_date=_deserialize_dt(payload.get("current_streak_start_date")),
            last_completion_date=_deserialize_dt(payload.get("last_completion_date")),
            total_completions=int(payload.get("total_completions") or 0),
            last_updated=_deserialize_dt(payload.get("last_updated")) or datetime.now(),
        )


@dataclass(frozen=True, slots=True)
class HabitCompletion:
    id: str
    habit_id: str
    habit_name: str
    completed_at: datetime
    notes: str | None = None
    duration_minutes: int | None = None
    quality_rating: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "habit_name": self.habit_name,
            "completed_at": _serialize_dt(self.completed_at),
            "notes": self.notes,
            "duration_minutes": self.duration_minutes,
            "quality_rating": self.quality_rating,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> HabitCompletion:
        completed_at = _deserialize_dt(payload.get("completed_at"))
        if completed_at is None:
            raise ValueError(f"Completion {payload.get('id')!r} has no valid completed_at")
        return cls(
            id=payload["id"],
            habit_id=payload["habit_id"],
            habit_name=payload.get("habit_name") or payload["habit_id"],
            completed_at=completed_at,
            notes=payload.get("notes"),
            duration_minutes=payload.get("duration_minutes"),
            quality_rating=payload.get("quality_rating"),
            metadata=payload.get("metadata") or {},
        )


@dataclass(frozen=True, slots=True)
class HabitProfile:
    """The habit the assistant records completions for."""

    habit_id: str
    habit_name: str


@dataclass(frozen=True, slots=True)
class SessionEvent:
    type: SessionEventType
    timestamp: datetime
    description: str
    session_id: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": _serialize_dt(self.timestamp),
            "description": self.description,
            "session_id": self.session_id,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class InteractionResult:
    """What the assistant answered for one recognized command."""

    session_id: str
    command: Command
    response_type: ResponseType
    text: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "command": self.command.type.value,
            "original_text": self.command.original_text,
            "confidence": round(self.command.confidence, 3),
            "response_type": self.response_type.value,
            "text": self.text,
            "timestamp": _serialize_dt(self.timestamp),
        }


@dataclass(slots=True)
class InteractionSession:
    """State and event history of one listen, process, respond cycle.

    The event list only grows; the whole session is dropped when the interaction ends.
    """

    id: str
    start_time: datetime
    _events: list[SessionEvent] = field(default_factory=list, repr=False)

    def append(
        self,
        event_type: SessionEventType,
        description: str,
        *,
        timestamp: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SessionEvent:
        event = SessionEvent(
            type=event_type,
            timestamp=timestamp or datetime.now(),
            description=description,
            session_id=self.id,
            metadata=metadata,
        )
        self._events.append(event)
        return event

    @property
    def events(self) -> tuple[SessionEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)
