"""Result values and the assistant error taxonomy.

Fallible assistant operations hand back a :class:`Result` instead of raising, so the
orchestrator can route every failure into its error state without try/except at each
call site. Each error class carries a stable ``code`` for logging and MQTT payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class AssistantError(RuntimeError):
    """Base class for assistant failures."""

    code = "AssistantError"


class InputError(AssistantError):
    """Raised for empty or unusable utterance text."""

    code = "EmptyInput"


class NotInitializedError(AssistantError):
    """Raised when the template engine is used before ``initialize()``."""

    code = "NotInitialized"


class NoUsableTemplateError(AssistantError):
    """Raised when no template can render the given context."""

    code = "NoUsableTemplate"


class PersistenceError(AssistantError):
    """Raised when the habit store fails to read or write."""

    code = "PersistenceError"


class SpeechIOError(AssistantError):
    """Raised when speech input or output fails."""

    code = "SpeechIOError"


class InvalidStateError(AssistantError):
    """Raised when an interaction is started while another one is active."""

    code = "InvalidState"


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    value: T | None = None
    error: AssistantError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: AssistantError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
