"""
Completion-rate aggregation.

Every view here (single habit, pooled habits, one week, one day) runs the same
walk over scheduled days:

  - a scheduled day with a completion counts as completed, today included;
  - a scheduled day without one counts as missed only if it is before today;
  - later scheduled days only enlarge the potential total.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Tuple

from completions import CompletionIndex
from models import Habit, as_day, is_scheduled, week_start

Tracked = Iterable[Tuple[Habit, CompletionIndex]]


@dataclass(frozen=True)
class RateStats:
    completed: int = 0
    not_completed: int = 0
    potential_total: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.not_completed

    @property
    def actual_rate(self) -> int:
        """completed / (completed + missed), truncated; 0 when nothing to judge."""
        if self.total == 0:
            return 0
        return self.completed * 100 // self.total

    @property
    def potential_rate(self) -> int:
        """Best reachable rate if every remaining scheduled slot gets done."""
        if self.potential_total == 0:
            return 100
        return (self.potential_total - self.not_completed) * 100 // self.potential_total

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total * 100

    def __add__(self, other: "RateStats") -> "RateStats":
        return RateStats(
            self.completed + other.completed,
            self.not_completed + other.not_completed,
            self.potential_total + other.potential_total,
        )


def iter_days(start, end) -> Iterator[date]:
    """Every calendar day in [start, end]."""
    curr = as_day(start)
    last = as_day(end)
    while curr <= last:
        yield curr
        try:
            curr += timedelta(days=1)
        except OverflowError:
            return


def _walk(habit: Habit, index: CompletionIndex, days: List[date], today: date) -> RateStats:
    completed = not_completed = potential = 0
    for day in days:
        if not is_scheduled(habit, day):
            continue
        potential += 1
        if index.is_completed(day):
            completed += 1
        elif day < today:
            not_completed += 1
    return RateStats(completed, not_completed, potential)


def window_stats(tracked: Tracked, start, end, today=None) -> RateStats:
    """Pooled counters for all ``(habit, index)`` pairs over [start, end]."""
    today = as_day(today or date.today())
    days = list(iter_days(start, end))
    stats = RateStats()
    for habit, index in tracked:
        stats = stats + _walk(habit, index, days, today)
    return stats


def habit_stats(habit: Habit, index: CompletionIndex, start=None, end=None, today=None) -> RateStats:
    today = as_day(today or date.today())
    start = as_day(start or habit.created_date)
    end = as_day(end or today)
    return window_stats([(habit, index)], start, end, today)


def completion_rate(habit: Habit, index: CompletionIndex, start=None, end=None, today=None) -> int:
    """Actual rate from ``start`` (default creation) to ``end`` (default today)."""
    return habit_stats(habit, index, start, end, today).actual_rate


def raw_stats(habit: Habit, index: CompletionIndex, start=None, end=None, today=None) -> Tuple[int, int]:
    stats = habit_stats(habit, index, start, end, today)
    return stats.completed, stats.not_completed


def actual_rate(tracked: Tracked, start, end, today=None) -> int:
    return window_stats(tracked, start, end, today).actual_rate


def potential_rate(tracked: Tracked, start, end, today=None) -> int:
    return window_stats(tracked, start, end, today).potential_rate


def day_percentage(tracked: Tracked, day) -> int:
    """Completed share of the habits scheduled on ``day``; 0 when none are."""
    stats = window_stats(tracked, day, day, today=day)
    if stats.potential_total == 0:
        return 0
    return stats.completed * 100 // stats.potential_total


def today_percentage(tracked: Tracked, today=None) -> int:
    return day_percentage(tracked, as_day(today or date.today()))


def week_dates(day) -> List[date]:
    monday = week_start(day)
    return [monday + timedelta(days=offset) for offset in range(7)]


def week_stats(tracked: Tracked, day, today=None) -> RateStats:
    """Pooled counters for the Monday-start week containing ``day``."""
    dates = week_dates(day)
    return window_stats(tracked, dates[0], dates[-1], today)
