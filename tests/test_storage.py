"""Tests for JSON habit persistence (cadence/assistant/storage.py)."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from cadence.assistant.models import HabitCompletion, StreakRecord
from cadence.assistant.storage import JsonHabitStore

pytestmark = pytest.mark.anyio

BASE = datetime(2026, 3, 10, 9, 30)


def _completion(completion_id, when, habit_id="workout"):
    return HabitCompletion(id=completion_id, habit_id=habit_id, habit_name=habit_id, completed_at=when)


# ============================================================================
# Streak records
# ============================================================================


class TestStreakRecords:
    async def test_missing_record_is_initial(self, store):
        result = await store.get_streak_record("workout")
        assert result.ok
        record = result.unwrap()
        assert record.habit_id == "workout"
        assert record.current_streak == 0
        assert record.last_completion_date is None

    async def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "data" / "habits.json"
        record = StreakRecord(
            habit_id="workout",
            current_streak=4,
            longest_streak=9,
            current_streak_start_date=BASE - timedelta(days=3),
            last_completion_date=BASE,
            total_completions=20,
            last_updated=BASE,
        )
        assert (await JsonHabitStore(path).update_streak_record(record)).ok
        assert path.exists()
        assert not path.with_suffix(".tmp").exists()

        reloaded = (await JsonHabitStore(path).get_streak_record("workout")).unwrap()
        assert reloaded == record


# ============================================================================
# Completions
# ============================================================================


class TestCompletions:
    async def test_range_is_inclusive_and_newest_first(self, store):
        for index, offset in enumerate([0, 1, 2, 5]):
            await store.save_completion(_completion(f"c{index}", BASE - timedelta(days=offset)))

        result = await store.get_completions(date(2026, 3, 8), BASE)
        ids = [completion.id for completion in result.unwrap()]
        assert ids == ["c0", "c1", "c2"]

    async def test_range_covers_whole_end_day(self, store):
        await store.save_completion(_completion("late", datetime(2026, 3, 10, 23, 50)))
        result = await store.get_completions(datetime(2026, 3, 10, 8, 0), datetime(2026, 3, 10, 8, 0))
        assert [completion.id for completion in result.unwrap()] == ["late"]

    async def test_filter_by_habit(self, store):
        await store.save_completion(_completion("a", BASE, habit_id="workout"))
        await store.save_completion(_completion("b", BASE, habit_id="reading"))
        result = await store.get_completions(BASE, BASE, habit_id="reading")
        assert [completion.id for completion in result.unwrap()] == ["b"]

    async def test_completions_survive_reload(self, tmp_path):
        path = tmp_path / "habits.json"
        await JsonHabitStore(path).save_completion(_completion("a", BASE))
        result = await JsonHabitStore(path).get_completions(BASE, BASE)
        assert [completion.id for completion in result.unwrap()] == ["a"]


# ============================================================================
# Maintenance and failures
# ============================================================================


class TestMaintenance:
    async def test_clear_all(self, store):
        await store.save_completion(_completion("a", BASE))
        await store.update_streak_record(StreakRecord(habit_id="workout", current_streak=2))
        assert (await store.clear_all()).ok

        assert (await store.get_completions(BASE, BASE)).unwrap() == []
        assert (await store.get_streak_record("workout")).unwrap().current_streak == 0

    async def test_export_json(self, store):
        await store.save_completion(_completion("a", BASE))
        exported = json.loads((await store.export_json()).unwrap())
        assert exported["completions"][0]["id"] == "a"
        assert "exported_at" in exported
        assert exported["streaks"] == {}

    async def test_corrupt_file_is_a_persistence_error(self, tmp_path):
        path = tmp_path / "habits.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonHabitStore(path)

        result = await store.get_streak_record("workout")
        assert not result.ok
        assert result.error.code == "PersistenceError"
        assert not (await store.save_completion(_completion("a", BASE))).ok
        assert path.read_text(encoding="utf-8") == "{not json"

    async def test_invalid_entries_are_skipped(self, tmp_path):
        path = tmp_path / "habits.json"
        path.write_text(
            json.dumps(
                {
                    "streaks": {"workout": {"current_streak": 2}},
                    "completions": [
                        {"id": "bad", "habit_id": "workout"},
                        {"id": "good", "habit_id": "workout", "completed_at": BASE.isoformat()},
                    ],
                }
            ),
            encoding="utf-8",
        )
        store = JsonHabitStore(path)
        assert (await store.get_streak_record("workout")).unwrap().current_streak == 2
        completions = (await store.get_completions(BASE, BASE)).unwrap()
        assert [completion.id for completion in completions] == ["good"]

    async def test_failed_write_leaves_state_unchanged(self, tmp_path):
        path = tmp_path / "habits.json"
        store = JsonHabitStore(path)
        await store.update_streak_record(StreakRecord(habit_id="workout", current_streak=1, total_completions=1))

        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            saved = await store.save_completion(_completion("c1", BASE))
            updated = await store.update_streak_record(StreakRecord(habit_id="workout", current_streak=2))
            cleared = await store.clear_all()

        assert saved.error.code == "PersistenceError"
        assert updated.error.code == "PersistenceError"
        assert cleared.error.code == "PersistenceError"
        assert (await store.get_completions(BASE, BASE)).unwrap() == []
        assert (await store.get_streak_record("workout")).unwrap().current_streak == 1

        assert (await store.save_completion(_completion("c2", BASE))).ok
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert [item["id"] for item in on_disk["completions"]] == ["c2"]
        assert on_disk["streaks"]["workout"]["current_streak"] == 1
