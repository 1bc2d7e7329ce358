"""Stable color assignment for habits, memoized per habit set."""

from typing import Dict, Iterable, List

from models import Habit

COLORS = [
    "red", "green", "blue", "orange", "purple", "yellow", "pink",
    "mint", "cyan", "indigo", "teal", "brown", "gray",
]
FALLBACK_COLOR = "gray"


class HabitColorMap:
    """
    Owns its own cache; nothing is shared between instances. Call
    ``invalidate`` after habits are deleted or re-created.
    """

    def __init__(self, palette: List[str] = None):
        self.palette = list(palette or COLORS)
        self._cache: Dict[str, Dict[str, str]] = {}

    @staticmethod
    def _ordered(habits: Iterable[Habit]) -> List[Habit]:
        return sorted(habits, key=lambda h: (h.created_date, h.id))

    @staticmethod
    def signature(habits: Iterable[Habit]) -> str:
        return ",".join(sorted(h.id for h in habits))

    def mapping(self, habits: Iterable[Habit]) -> Dict[str, str]:
        habits = list(habits)
        key = self.signature(habits)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        result = {
            h.id: self.palette[i % len(self.palette)]
            for i, h in enumerate(self._ordered(habits))
        }
        self._cache[key] = result
        return result

    def color_for(self, habit: Habit, habits: Iterable[Habit]) -> str:
        return self.mapping(habits).get(habit.id, FALLBACK_COLOR)

    def index_for(self, habit: Habit, habits: Iterable[Habit]) -> int:
        for i, h in enumerate(self._ordered(habits)):
            if h.id == habit.id:
                return i
        return 0

    def invalidate(self):
        self._cache.clear()

    def __len__(self):
        return len(self._cache)
