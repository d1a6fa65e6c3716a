"""Habit persistence: the store protocol and a JSON file implementation."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol

from ..datetime_utils import calendar_day
from .models import HabitCompletion, StreakRecord
from .results import PersistenceError, Result
from .streaks import initial_record

LOGGER = logging.getLogger(__name__)

STORE_VERSION = 1


class HabitStore(Protocol):
    async def get_streak_record(self, habit_id: str) -> Result[StreakRecord]: ...

    async def update_streak_record(self, record: StreakRecord) -> Result[None]: ...

    async def save_completion(self, completion: HabitCompletion) -> Result[None]: ...

    async def get_completions(
        self,
        start: datetime | date,
        end: datetime | date,
        habit_id: str | None = None,
    ) -> Result[list[HabitCompletion]]: ...


class JsonHabitStore:
    """Keep streak records and completions in a single JSON document.

    The file is read once on first use and rewritten through a ``.tmp`` sibling on
    every change. A file that cannot be parsed is reported as a ``PersistenceError``
    on each call rather than silently replaced.
    """

    def __init__(self, storage_path: Path, logger: logging.Logger | None = None) -> None:
        self._storage_path = storage_path
        self._logger = logger or LOGGER
        self._lock = asyncio.Lock()
        self._streaks: dict[str, StreakRecord] = {}
        self._completions: list[HabitCompletion] = []
        self._loaded = False

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    # ========================================================================
    # HabitStore
    # ========================================================================

    async def get_streak_record(self, habit_id: str) -> Result[StreakRecord]:
        async with self._lock:
            try:
                self._ensure_loaded()
            except PersistenceError as exc:
                return Result.failure(exc)
            record = self._streaks.get(habit_id)
        return Result.success(record or initial_record(habit_id))

    async def update_streak_record(self, record: StreakRecord) -> Result[None]:
        async with self._lock:
            try:
                self._ensure_loaded()
                streaks = {**self._streaks, record.habit_id: record}
                self._persist(streaks, self._completions)
                self._streaks = streaks
            except PersistenceError as exc:
                return Result.failure(exc)
        self._logger.debug(
            "[store] Streak for %s now %d (longest %d)",
            record.habit_id,
            record.current_streak,
            record.longest_streak,
        )
        return Result.success()

    async def save_completion(self, completion: HabitCompletion) -> Result[None]:
        async with self._lock:
            try:
                self._ensure_loaded()
                completions = [*self._completions, completion]
                self._persist(self._streaks, completions)
                self._completions = completions
            except PersistenceError as exc:
                return Result.failure(exc)
        self._logger.debug("[store] Saved completion %s for %s", completion.id, completion.habit_id)
        return Result.success()

    async def get_completions(
        self,
        start: datetime | date,
        end: datetime | date,
        habit_id: str | None = None,
    ) -> Result[list[HabitCompletion]]:
        """Completions whose calendar day falls within ``start``..``end`` inclusive, newest first."""
        first_day = calendar_day(start)
        last_day = calendar_day(end)
        async with self._lock:
            try:
                self._ensure_loaded()
            except PersistenceError as exc:
                return Result.failure(exc)
            matches = [
                completion
                for completion in self._completions
                if (habit_id is None or completion.habit_id == habit_id)
                and first_day <= calendar_day(completion.completed_at) <= last_day
            ]
        matches.sort(key=lambda completion: completion.completed_at.timestamp(), reverse=True)
        return Result.success(matches)

    # ========================================================================
    # Maintenance
    # ========================================================================

    async def clear_all(self) -> Result[None]:
        async with self._lock:
            try:
                self._persist({}, [])
            except PersistenceError as exc:
                return Result.failure(exc)
            self._streaks = {}
            self._completions = []
            self._loaded = True
        self._logger.info("[store] Cleared all habit data at %s", self._storage_path)
        return Result.success()

    async def export_json(self) -> Result[str]:
        async with self._lock:
            try:
                self._ensure_loaded()
            except PersistenceError as exc:
                return Result.failure(exc)
            payload = self._snapshot(self._streaks, self._completions)
        payload["exported_at"] = datetime.now().isoformat()
        return Result.success(json.dumps(payload, indent=2))

    # ========================================================================
    # File handling
    # ========================================================================

    @staticmethod
    def _snapshot(streaks: dict[str, StreakRecord], completions: list[HabitCompletion]) -> dict[str, Any]:
        return {
            "version": STORE_VERSION,
            "streaks": {habit_id: record.to_dict() for habit_id, record in streaks.items()},
            "completions": [completion.to_dict() for completion in completions],
        }

    def _persist(self, streaks: dict[str, StreakRecord], completions: list[HabitCompletion]) -> None:
        """Write the given state to disk. Memory is only updated by callers once this returns."""
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._storage_path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(self._snapshot(streaks, completions), indent=2), encoding="utf-8")
            tmp_path.replace(self._storage_path)
        except OSError as exc:
            self._logger.warning("[store] Failed to write %s: %s", self._storage_path, exc)
            raise PersistenceError(f"Unable to write habit data: {exc}") from exc

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if not self._storage_path.exists():
            self._loaded = True
            return
        try:
            data = json.loads(self._storage_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            self._logger.warning("[store] Failed to load habit data %s: %s", self._storage_path, exc)
            raise PersistenceError(f"Unable to read habit data: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Habit data in {self._storage_path} is not a JSON object")

        streaks = data.get("streaks") or {}
        if isinstance(streaks, dict):
            for habit_id, item in streaks.items():
                try:
                    self._streaks[habit_id] = StreakRecord.from_dict({**item, "habit_id": habit_id})
                except Exception:
                    self._logger.debug("[store] Skipping invalid streak entry: %s", item, exc_info=True)
        for item in data.get("completions") or []:
            try:
                self._completions.append(HabitCompletion.from_dict(item))
            except Exception:
                self._logger.debug("[store] Skipping invalid completion entry: %s", item, exc_info=True)
        self._loaded = True
