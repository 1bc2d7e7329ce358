# widget_snapshot.py
"""
Read-model for the home-screen widget.

The widget never touches the habit store: it decodes the JSON snapshot that
the app writes into a small shared key-value file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from models import as_day, is_scheduled
from rates import Tracked, week_dates, week_stats
from streaks import current_streak

logger = logging.getLogger(__name__)

WIDGET_DATA_KEY = "widgetData"
LAST_UPDATE_KEY = "lastUpdate"


@dataclass
class WidgetHabit:
    identity: str
    streak: int
    weekly_completions: List[bool]  # Monday..Sunday


@dataclass
class WidgetData:
    week_number: int
    current_week_completion: int
    last_week_completion: int
    actual_rate: int = 0
    potential_rate: int = 100
    habits: List[WidgetHabit] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "WidgetData":
        return cls(
            week_number=int(raw["week_number"]),
            current_week_completion=int(raw["current_week_completion"]),
            last_week_completion=int(raw["last_week_completion"]),
            actual_rate=int(raw.get("actual_rate", 0)),
            potential_rate=int(raw.get("potential_rate", 100)),
            habits=[
                WidgetHabit(h["identity"], int(h["streak"]), [bool(x) for x in h["weekly_completions"]])
                for h in raw.get("habits", [])
            ],
        )


def _scheduled_share(tracked, dates) -> int:
    """Completed / scheduled over whole days, future days included."""
    scheduled = completed = 0
    for habit, index in tracked:
        for d in dates:
            if is_scheduled(habit, d):
                scheduled += 1
                if index.is_completed(d):
                    completed += 1
    return completed * 100 // scheduled if scheduled else 0


def build_widget_data(tracked: Tracked, today=None) -> WidgetData:
    today = as_day(today or date.today())
    tracked = sorted(tracked, key=lambda pair: pair[0].sort_key())

    this_week = week_dates(today)
    last_week = week_dates(today - timedelta(days=7))
    stats = week_stats(tracked, today, today)

    habits = [
        WidgetHabit(
            identity=habit.identity,
            streak=current_streak(habit, index, as_of=today),
            weekly_completions=[is_scheduled(habit, d) and index.is_completed(d) for d in this_week],
        )
        for habit, index in tracked
    ]
    return WidgetData(
        week_number=today.isocalendar()[1],
        current_week_completion=_scheduled_share(tracked, this_week),
        last_week_completion=_scheduled_share(tracked, last_week),
        actual_rate=stats.actual_rate,
        potential_rate=stats.potential_rate,
        habits=habits,
    )


class SharedStore:
    """Tiny JSON key-value file shared with the widget process."""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Shared store %s unreadable: %s", self.path, exc)
            return {}

    def _write(self, obj):
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str, default=None):
        return self._read().get(key, default)

    def set_many(self, values: Dict[str, Any]):
        data = self._read()
        data.update(values)
        self._write(data)

    def set(self, key: str, value):
        self.set_many({key: value})


def save_widget_data(store: SharedStore, data: WidgetData, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    try:
        store.set_many({
            WIDGET_DATA_KEY: json.dumps(data.to_dict()),
            LAST_UPDATE_KEY: now.isoformat(),
        })
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Error encoding widget data: %s", exc)
        return False
    return True


def load_widget_data(store: SharedStore) -> Optional[WidgetData]:
    raw = store.get(WIDGET_DATA_KEY)
    if raw is None:
        return None
    try:
        return WidgetData.from_dict(json.loads(raw))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Error decoding widget data: %s", exc)
        return None


def last_update(store: SharedStore) -> Optional[datetime]:
    raw = store.get(LAST_UPDATE_KEY)
    try:
        return datetime.fromisoformat(raw) if raw else None
    except ValueError:
        return None


def publish_in_background(store: SharedStore, data: WidgetData) -> threading.Thread:
    """
    Write an already-built snapshot off the caller's thread. The snapshot is
    built from committed data beforehand, so the thread only reads it.
    """
    worker = threading.Thread(
        target=save_widget_data,
        args=(store, data),
        name="widget-publisher",
        daemon=True,
    )
    worker.start()
    return worker
