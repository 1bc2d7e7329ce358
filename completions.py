"""Day-granular completion lookups."""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Iterator, Optional

from models import Completion, as_day


class CompletionIndex:
    """
    Buckets a habit's completions by calendar day.

    Both the stored timestamps and every query are truncated to the day, so a
    completion logged at 23:59 matches a query made at 00:00 the same day.
    Build one index per habit and reuse it for streak and rate walks.
    """

    def __init__(self, completions: Iterable[Completion] = ()):
        self._by_day: Dict = {}
        for completion in completions:
            # first completion of the day wins; later duplicates are ignored
            self._by_day.setdefault(as_day(completion.date), completion)

    def is_completed(self, day) -> bool:
        return as_day(day) in self._by_day

    def completion_for(self, day) -> Optional[Completion]:
        return self._by_day.get(as_day(day))

    @property
    def days(self) -> FrozenSet:
        return frozenset(self._by_day)

    def __len__(self) -> int:
        return len(self._by_day)

    def __iter__(self) -> Iterator[Completion]:
        for day in sorted(self._by_day):
            yield self._by_day[day]


def completion_for(completions: Iterable[Completion], day) -> Optional[Completion]:
    """Single lookup without building an index."""
    target = as_day(day)
    for completion in completions:
        if as_day(completion.date) == target:
            return completion
    return None


def is_completed(completions: Iterable[Completion], day) -> bool:
    return completion_for(completions, day) is not None
