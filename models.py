# models.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

WEEK = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]  # 0 = Sunday
ALL_DAYS = frozenset(range(7))
MAX_HABITS = 13
HABIT_LIMIT_MESSAGE = f"You can track up to {MAX_HABITS} habits. Focus beats breadth."
# backups pipe-join experiment lists
LIST_SEPARATOR = "|"
SEPARATOR_MESSAGE = f"Experiments cannot contain '{LIST_SEPARATOR}'."


def _new_id() -> str:
    return uuid.uuid4().hex


def as_day(value) -> date:
    """Drop the time-of-day part; dates pass through unchanged."""
    if isinstance(value, datetime):
        return value.date()
    return value


def weekday_index(d) -> int:
    """Weekday of ``d`` with 0 = Sunday .. 6 = Saturday."""
    return (as_day(d).weekday() + 1) % 7


def week_start(d) -> date:
    """Monday of the week containing ``d``."""
    day = as_day(d)
    return day - timedelta(days=day.weekday())


@dataclass
class Habit:
    name: str
    identity: str
    selected_days: Set[int] = field(default_factory=lambda: set(ALL_DAYS))
    experiments: List[str] = field(default_factory=list)
    experiment_history: List[str] = field(default_factory=list)
    created_date: datetime = field(default_factory=datetime.now)
    sort_order: int = 0
    streak: int = 0
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.selected_days = {int(d) for d in self.selected_days if 0 <= int(d) <= 6}
        for experiment in self.experiments:
            if experiment not in self.experiment_history:
                self.experiment_history.append(experiment)

    def add_experiment(self, text: str) -> bool:
        text = (text or "").strip()
        if not text or LIST_SEPARATOR in text or text in self.experiments:
            return False
        self.experiments.append(text)
        if text not in self.experiment_history:
            self.experiment_history.append(text)
        return True

    def remove_experiment(self, text: str) -> bool:
        # history keeps it as a past experiment
        if text not in self.experiments:
            return False
        self.experiments.remove(text)
        return True

    @property
    def past_experiments(self) -> List[str]:
        return [e for e in self.experiment_history if e not in self.experiments]

    def sort_key(self):
        return (self.sort_order, self.created_date)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "identity": self.identity,
            "created_date": self.created_date.isoformat(),
            "selected_days": sorted(self.selected_days),
            "experiments": list(self.experiments),
            "experiment_history": list(self.experiment_history),
            "sort_order": self.sort_order,
            "streak": self.streak,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "Habit":
        return cls(
            id=raw.get("id") or _new_id(),
            name=raw["name"],
            identity=raw.get("identity", ""),
            created_date=datetime.fromisoformat(raw["created_date"]),
            selected_days=set(raw.get("selected_days", ALL_DAYS)),
            experiments=list(raw.get("experiments", [])),
            experiment_history=list(raw.get("experiment_history", [])),
            sort_order=int(raw.get("sort_order", 0)),
            streak=int(raw.get("streak", 0)),
        )


@dataclass
class Completion:
    habit_id: str
    date: datetime


@dataclass
class WeeklyRetrospective:
    week_start: date
    notes: str = ""
    created_date: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        self.week_start = week_start(self.week_start)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "week_start": self.week_start.isoformat(),
            "notes": self.notes,
            "created_date": self.created_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "WeeklyRetrospective":
        return cls(
            id=raw.get("id") or _new_id(),
            week_start=date.fromisoformat(raw["week_start"]),
            notes=raw.get("notes", ""),
            created_date=datetime.fromisoformat(raw["created_date"]),
        )


def is_scheduled(h: Habit, d) -> bool:
    return weekday_index(d) in h.selected_days


def sort_habits(habits: Iterable[Habit]) -> List[Habit]:
    return sorted(habits, key=Habit.sort_key)


# -------- Service payloads --------
def habit_payload(h: Habit, completions: Iterable[Completion]) -> Dict:
    """Habit plus its completion timestamps, as sent to the analytics services."""
    return {
        "habit": h.to_dict(),
        "completions": [c.date.isoformat() for c in completions],
    }


def read_habit_payload(payload: Dict):
    """Inverse of habit_payload; raises KeyError/ValueError/TypeError on bad input."""
    h = Habit.from_dict(payload["habit"])
    completions: List[Completion] = []
    for raw in payload.get("completions") or []:
        completions.append(Completion(h.id, datetime.fromisoformat(raw)))
    return h, completions


def parse_day(raw: Optional[str]) -> Optional[date]:
    if raw is None:
        return None
    return as_day(datetime.fromisoformat(raw))
