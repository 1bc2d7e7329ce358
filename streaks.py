"""Current and best streaks counted over scheduled days only."""

from datetime import date, timedelta

from completions import CompletionIndex
from models import Habit, as_day, is_scheduled

STREAK_LOOKBACK_DAYS = 365
ONE_DAY = timedelta(days=1)


def _previous_day(d: date):
    """Day before ``d`` or None when the calendar runs out."""
    try:
        return d - ONE_DAY
    except OverflowError:
        return None


def _count_backward_streak(habit: Habit, index: CompletionIndex, start: date, anchor: date) -> int:
    """
    Count completed scheduled days walking back from ``start``.

    Unscheduled days are stepped over, the first scheduled-but-missed day ends
    the run. The walk gives up once it is more than STREAK_LOOKBACK_DAYS behind
    ``anchor``, so a very sparse schedule can report a shorter streak than the
    true one.
    """
    length = 0
    curr = start
    while curr is not None:
        if is_scheduled(habit, curr):
            if not index.is_completed(curr):
                break
            length += 1
        curr = _previous_day(curr)
        if curr is not None and (anchor - curr).days > STREAK_LOOKBACK_DAYS:
            break
    return length


def current_streak(habit: Habit, index: CompletionIndex, as_of=None) -> int:
    """
    Streak ending at ``as_of`` (default today).

    A completed ``as_of`` counts; an unfinished one is neither counted nor
    treated as a miss, the walk simply starts from the day before.
    """
    anchor = as_day(as_of or date.today())
    streak = 0
    if is_scheduled(habit, anchor) and index.is_completed(anchor):
        streak = 1
    start = _previous_day(anchor)
    if start is None:
        return streak
    return streak + _count_backward_streak(habit, index, start, anchor)


def best_streak(habit: Habit, index: CompletionIndex, lookback_days: int = STREAK_LOOKBACK_DAYS, today=None) -> int:
    """Longest run of completed scheduled days within the last ``lookback_days``."""
    curr = as_day(today or date.today())
    best = 0
    current = 0
    for _ in range(lookback_days):
        if is_scheduled(habit, curr):
            if index.is_completed(curr):
                current += 1
                best = max(best, current)
            else:
                current = 0
        curr = _previous_day(curr)
        if curr is None:
            break
    return best
