"""Ordered observer channel for orchestrator notifications."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

LOGGER = logging.getLogger(__name__)

Subscriber = Callable[[Any], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


class EventKind(StrEnum):
    STATE = "state"
    RESULT = "result"
    ERROR = "error"
    METRICS = "metrics"
    TRANSCRIPT = "transcript"


class InteractionEvents:
    """Fan out notifications to subscribers in registration order.

    Subscribers may be plain callables or coroutine functions. A subscriber that
    raises is logged and skipped so later subscribers still see the event.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._subscribers: dict[EventKind, list[Subscriber]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind, callback: Subscriber) -> Unsubscribe:
        entries = self._subscribers[kind]
        entries.append(callback)

        def unsubscribe() -> None:
            # identity match so a callback registered twice is removed one registration at a time
            for index, existing in enumerate(entries):
                if existing is callback:
                    del entries[index]
                    return

        return unsubscribe

    def subscriber_count(self, kind: EventKind) -> int:
        return len(self._subscribers[kind])

    async def emit(self, kind: EventKind, payload: Any) -> None:
        for callback in list(self._subscribers[kind]):
            try:
                outcome = callback(payload)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                self._logger.exception("[events] %s subscriber %r failed", kind, callback)

    def clear(self) -> None:
        for entries in self._subscribers.values():
            entries.clear()
