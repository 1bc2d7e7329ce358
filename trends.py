"""Weekly and monthly completion trends for charts and tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Sequence, Tuple

from completions import CompletionIndex
from models import Habit, as_day, week_start
from rates import Tracked, window_stats

PERIOD_KINDS = ("week", "month")
DEFAULT_MAX_PERIODS = 10
MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# =========================
# Period arithmetic
# =========================

def shift_months(d: date, months: int) -> date:
    """First day of the month ``months`` away from d's month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def period_bounds(kind: str, today: date, offset: int) -> Tuple[date, date]:
    """
    Inclusive (first, last) day of the period ``offset`` steps before the one
    containing today. Weeks start on Monday.
    """
    if kind == "week":
        first = week_start(today) - timedelta(weeks=offset)
        return first, first + timedelta(days=6)
    if kind == "month":
        first = shift_months(today, -offset)
        return first, shift_months(first, 1) - timedelta(days=1)
    raise ValueError(f"Unknown period kind {kind!r}. Expected 'week' or 'month'.")


def periods_since_creation(habit: Habit, kind: str, max_periods: int, today=None) -> int:
    """Number of periods to chart: elapsed periods + 1, clamped to [1, max_periods]."""
    today = as_day(today or date.today())
    created = as_day(habit.created_date)
    if kind == "week":
        elapsed = (week_start(today) - week_start(created)).days // 7
    elif kind == "month":
        elapsed = (today.year - created.year) * 12 + (today.month - created.month)
    else:
        raise ValueError(f"Unknown period kind {kind!r}. Expected 'week' or 'month'.")
    return max(1, min(elapsed + 1, max_periods))


# =========================
# Series
# =========================

def period_value(habit: Habit, index: CompletionIndex, kind: str, offset: int, today=None) -> float:
    """Completion percentage of one period, judged with the today-exclusion rule."""
    today = as_day(today or date.today())
    first, last = period_bounds(kind, today, offset)
    return window_stats([(habit, index)], first, last, today).percentage


def moving_average(series: Sequence[float], window: int = 3) -> List[float]:
    """
    Trailing average of the same length as ``series``.

    The first ``window - 1`` points average everything seen so far instead of
    being dropped.
    """
    if window < 1:
        raise ValueError("window must be at least 1")
    averages = []
    for i in range(len(series)):
        chunk = series[max(0, i - window + 1): i + 1]
        averages.append(sum(chunk) / len(chunk))
    return averages


def _labels(kind: str, starts: List[date]) -> Tuple[List[str], List[str]]:
    if kind == "week":
        labels = [f"Week {start.isocalendar()[1]}" for start in starts]
        return labels, list(labels)
    labels = [MONTH_ABBR[start.month - 1] for start in starts]
    table = [f"{MONTH_ABBR[start.month - 1]} {start.year}" for start in starts]
    return labels, table


@dataclass
class TrendSeries:
    kind: str
    values: List[float]
    labels: List[str]
    table_labels: List[str]
    period_starts: List[date] = field(default_factory=list)
    window: int = 3

    @property
    def moving_average(self) -> List[float]:
        return moving_average(self.values, self.window)

    @property
    def average(self) -> int:
        if not self.values:
            return 0
        return int(sum(self.values) / len(self.values))

    @property
    def title(self) -> str:
        return f"{len(self.values)}-{self.kind.capitalize()} Trend"

    def rows(self) -> List[Tuple[str, str]]:
        """(label, "NN%") pairs for a tabular view."""
        return [(label, f"{value:.0f}%") for label, value in zip(self.table_labels, self.values)]


def trend_series(habit: Habit, index: CompletionIndex, kind: str = "week",
                 max_periods: int = DEFAULT_MAX_PERIODS, today=None) -> TrendSeries:
    """Oldest-first percentages for the last periods since the habit was created."""
    if kind not in PERIOD_KINDS:
        raise ValueError(f"Unknown period kind {kind!r}. Expected 'week' or 'month'.")
    today = as_day(today or date.today())
    count = periods_since_creation(habit, kind, max_periods, today)

    values = []
    starts = []
    for offset in reversed(range(count)):
        first, _ = period_bounds(kind, today, offset)
        starts.append(first)
        values.append(period_value(habit, index, kind, offset, today))

    labels, table_labels = _labels(kind, starts)
    return TrendSeries(kind, values, labels, table_labels, starts)


def year_overview(tracked: Tracked, year: int, today=None) -> List[Tuple[str, float]]:
    """Pooled completion percentage for each month of ``year``."""
    today = as_day(today or date.today())
    tracked = list(tracked)
    data = []
    for month in range(1, 13):
        first = date(year, month, 1)
        last = shift_months(first, 1) - timedelta(days=1)
        data.append((MONTH_ABBR[month - 1], window_stats(tracked, first, last, today).percentage))
    return data
