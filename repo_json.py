# repo_json.py
import json
import logging
import os
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from backup_csv import BackupData, export_backup, parse_backup
from completions import CompletionIndex
from models import (
    HABIT_LIMIT_MESSAGE,
    LIST_SEPARATOR,
    MAX_HABITS,
    SEPARATOR_MESSAGE,
    Completion,
    Habit,
    WeeklyRetrospective,
    as_day,
    is_scheduled,
    sort_habits,
    week_start,
)
from streaks import current_streak

logger = logging.getLogger(__name__)


def _empty() -> dict:
    return {"habits": [], "completions": {}, "retrospectives": []}


class JSONRepo:
    """
    JSON-file store for habits, completions and retrospectives.

    Completions live in their own arena keyed by habit id, so deleting a habit
    is a single key removal. Every mutation commits to disk immediately and
    returns a ``(value, error)`` pair; a failed commit rolls the in-memory
    change back before returning the error.
    """

    def __init__(self, path: str):
        self.path = path
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        if not os.path.exists(path):
            self._write(_empty())
        self.data = self._read()

    def _read(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, obj):
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
        os.replace(tmp, self.path)

    def _commit(self, undo, action: str) -> Optional[str]:
        try:
            self._write(self.data)
        except OSError as exc:
            undo()
            logger.error("Could not save %s: %s", action, exc)
            return f"Could not save {action}: {exc}"
        return None

    # -------- Habits --------
    def list_habits(self) -> List[Habit]:
        return sort_habits(Habit.from_dict(h) for h in self.data["habits"])

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        raw = self._raw_habit(habit_id)
        return Habit.from_dict(raw) if raw else None

    def find_habit(self, key: str) -> Optional[Habit]:
        """Match by id, id prefix, identity or name (case-insensitive)."""
        key = (key or "").strip()
        if not key:
            return None
        lowered = key.lower()
        habits = self.list_habits()
        for h in habits:
            if h.id == key:
                return h
        for h in habits:
            if h.identity.lower() == lowered or h.name.lower() == lowered:
                return h
        prefixed = [h for h in habits if h.id.startswith(key)]
        return prefixed[0] if len(prefixed) == 1 else None

    def _raw_habit(self, habit_id: str) -> Optional[dict]:
        for raw in self.data["habits"]:
            if raw["id"] == habit_id:
                return raw
        return None

    def add_habit(self, name: str, identity: str, selected_days=None, experiments=None,
                  sort_order: Optional[int] = None) -> Tuple[Optional[Habit], Optional[str]]:
        if len(self.data["habits"]) >= MAX_HABITS:
            return None, HABIT_LIMIT_MESSAGE
        if not name.strip() or not identity.strip():
            return None, "A habit needs both a name and an identity."
        if selected_days is not None and not set(selected_days):
            return None, "Pick at least one day of the week."
        experiments = [e.strip() for e in experiments or [] if e.strip()]
        if any(LIST_SEPARATOR in e for e in experiments):
            return None, SEPARATOR_MESSAGE

        if sort_order is None:
            sort_order = max((h.get("sort_order", 0) for h in self.data["habits"]), default=0) + 1
        kwargs = {}
        if selected_days is not None:
            kwargs["selected_days"] = set(selected_days)
        habit = Habit(
            name=name.strip(),
            identity=identity.strip(),
            experiments=experiments,
            sort_order=sort_order,
            **kwargs,
        )
        self.data["habits"].append(habit.to_dict())
        self.data["completions"][habit.id] = []

        def undo():
            self.data["habits"].pop()
            self.data["completions"].pop(habit.id, None)

        error = self._commit(undo, "habit")
        return (None, error) if error else (habit, None)

    def save_habit(self, habit: Habit) -> Tuple[Optional[Habit], Optional[str]]:
        """Persist edits (rename, reschedule, experiments) made to ``habit``."""
        raw = self._raw_habit(habit.id)
        if raw is None:
            return None, f"Unknown habit {habit.id}"
        if not habit.selected_days:
            return None, "Pick at least one day of the week."
        if any(LIST_SEPARATOR in e for e in habit.experiments + habit.experiment_history):
            return None, SEPARATOR_MESSAGE
        before = dict(raw)
        # schedule changes can move the streak
        habit.streak = current_streak(habit, self.completion_index(habit.id))
        raw.clear()
        raw.update(habit.to_dict())

        def undo():
            raw.clear()
            raw.update(before)

        error = self._commit(undo, "habit")
        return (None, error) if error else (habit, None)

    def reorder(self, habit_ids: List[str]) -> Optional[str]:
        """Assign sort orders 1..n following ``habit_ids``."""
        before = {raw["id"]: raw.get("sort_order", 0) for raw in self.data["habits"]}
        for position, habit_id in enumerate(habit_ids, start=1):
            raw = self._raw_habit(habit_id)
            if raw is not None:
                raw["sort_order"] = position

        def undo():
            for raw in self.data["habits"]:
                raw["sort_order"] = before.get(raw["id"], 0)

        return self._commit(undo, "habit order")

    def delete_habit(self, habit_id: str) -> Optional[str]:
        snapshot_habits = list(self.data["habits"])
        snapshot_completions = self.data["completions"].get(habit_id)
        self.data["habits"] = [h for h in self.data["habits"] if h["id"] != habit_id]
        # completions go with their habit
        self.data["completions"].pop(habit_id, None)

        def undo():
            self.data["habits"] = snapshot_habits
            if snapshot_completions is not None:
                self.data["completions"][habit_id] = snapshot_completions

        return self._commit(undo, "habit deletion")

    # -------- Completions --------
    def completions_for(self, habit_id: str) -> List[Completion]:
        return [
            Completion(habit_id, datetime.fromisoformat(raw))
            for raw in self.data["completions"].get(habit_id, [])
        ]

    def completion_index(self, habit_id: str) -> CompletionIndex:
        return CompletionIndex(self.completions_for(habit_id))

    def completions_by_habit(self) -> Dict[str, List[Completion]]:
        return {h["id"]: self.completions_for(h["id"]) for h in self.data["habits"]}

    def tracked_habits(self) -> List[Tuple[Habit, CompletionIndex]]:
        """Ordered (habit, index) pairs for the analytics functions."""
        return [(h, self.completion_index(h.id)) for h in self.list_habits()]

    def toggle_completion(self, habit_id: str, when=None, today=None) -> Tuple[Optional[bool], Optional[str]]:
        """
        Mark or unmark the day of ``when`` (default now) for a habit.

        The in-memory state flips first; if the save fails it is restored and
        the error returned. Returns (is_completed_now, error).
        """
        raw = self._raw_habit(habit_id)
        if raw is None:
            return None, f"Unknown habit {habit_id}"
        when = when or datetime.now()
        if not isinstance(when, datetime):
            when = datetime.combine(when, datetime.now().time())
        day = as_day(when)

        stamps: List[str] = self.data["completions"].setdefault(habit_id, [])
        before_stamps = list(stamps)
        before_streak = raw.get("streak", 0)

        existing = [s for s in stamps if as_day(datetime.fromisoformat(s)) == day]
        if existing:
            stamps[:] = [s for s in stamps if s not in existing]
            completed = False
        else:
            stamps.append(when.isoformat())
            completed = True

        habit = Habit.from_dict(raw)
        raw["streak"] = current_streak(habit, self.completion_index(habit_id), as_of=today)

        def undo():
            stamps[:] = before_stamps
            raw["streak"] = before_streak

        error = self._commit(undo, "completion")
        return (None, error) if error else (completed, None)

    def refresh_streaks(self, today=None) -> Optional[str]:
        """Recompute every cached streak, e.g. after midnight or an import."""
        before = {raw["id"]: raw.get("streak", 0) for raw in self.data["habits"]}
        for raw in self.data["habits"]:
            habit = Habit.from_dict(raw)
            raw["streak"] = current_streak(habit, self.completion_index(habit.id), as_of=today)

        def undo():
            for raw in self.data["habits"]:
                raw["streak"] = before.get(raw["id"], 0)

        return self._commit(undo, "streaks")

    # -------- Retrospectives --------
    def list_retrospectives(self) -> List[WeeklyRetrospective]:
        retros = [WeeklyRetrospective.from_dict(r) for r in self.data["retrospectives"]]
        return sorted(retros, key=lambda r: r.week_start)

    def retrospective_for(self, day) -> Optional[WeeklyRetrospective]:
        monday = week_start(day).isoformat()
        for raw in self.data["retrospectives"]:
            if raw["week_start"] == monday:
                return WeeklyRetrospective.from_dict(raw)
        return None

    def save_retrospective(self, day, notes: str) -> Tuple[Optional[WeeklyRetrospective], Optional[str]]:
        """Create or update the single retrospective for the week of ``day``."""
        monday = week_start(day).isoformat()
        for raw in self.data["retrospectives"]:
            if raw["week_start"] == monday:
                previous = raw["notes"]
                raw["notes"] = notes

                def undo():
                    raw["notes"] = previous

                error = self._commit(undo, "retrospective")
                return (None, error) if error else (WeeklyRetrospective.from_dict(raw), None)

        retro = WeeklyRetrospective(week_start=as_day(day), notes=notes)
        self.data["retrospectives"].append(retro.to_dict())

        def undo():
            self.data["retrospectives"].pop()

        error = self._commit(undo, "retrospective")
        return (None, error) if error else (retro, None)

    # -------- Backup --------
    def export_csv(self) -> str:
        return export_backup(self.list_habits(), self.completions_by_habit(), self.list_retrospectives())

    def replace_all(self, backup: BackupData, today=None) -> Optional[str]:
        """Drop everything and load ``backup`` instead. Cannot be undone once saved."""
        previous = self.data
        fresh = _empty()
        for habit in backup.habits:
            index = CompletionIndex(backup.completions.get(habit.id, []))
            habit.streak = current_streak(habit, index, as_of=today)
            fresh["habits"].append(habit.to_dict())
            fresh["completions"][habit.id] = [c.date.isoformat() for c in index]
        seen = {}
        for retro in backup.retrospectives:
            seen[retro.week_start] = retro.to_dict()
        fresh["retrospectives"] = list(seen.values())
        self.data = fresh

        def undo():
            self.data = previous

        return self._commit(undo, "imported data")

    def import_csv(self, text: str, today=None) -> Tuple[Optional[BackupData], Optional[str]]:
        """Replace all habits and retrospectives with the backup in ``text``."""
        backup = parse_backup(text)
        logger.warning(
            "Importing backup: replacing %d habit(s) with %d, %d row(s) skipped",
            len(self.data["habits"]), len(backup.habits), backup.skipped_rows,
        )
        error = self.replace_all(backup, today=today)
        return (None, error) if error else (backup, None)

    def reset_all(self) -> Optional[str]:
        previous = self.data
        self.data = _empty()

        def undo():
            self.data = previous

        return self._commit(undo, "reset")

    def is_empty(self) -> bool:
        return not self.data["habits"]

    def habits_for_day(self, d: date) -> List[Habit]:
        return [h for h in self.list_habits() if is_scheduled(h, d)]
