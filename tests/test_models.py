from datetime import date, datetime, timedelta

import pytest

from conftest import done_on, make_habit
from models import (
    WEEK,
    Habit,
    WeeklyRetrospective,
    habit_payload,
    is_scheduled,
    parse_day,
    read_habit_payload,
    sort_habits,
    week_start,
    weekday_index,
)


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2024, 1, 7)) == 0  # Sunday
    assert weekday_index(date(2024, 1, 1)) == 1  # Monday
    assert weekday_index(datetime(2024, 1, 6, 23, 59)) == 6
    assert WEEK[weekday_index(date(2024, 1, 3))] == "Wed"


def test_weekday_index_always_in_range():
    day = date(2023, 12, 1)
    for _ in range(60):
        assert 0 <= weekday_index(day) <= 6
        day += timedelta(days=1)


def test_is_scheduled_mon_wed_fri():
    habit = make_habit(days={1, 3, 5})
    scheduled = [d for d in range(1, 8) if is_scheduled(habit, date(2024, 1, d))]
    assert scheduled == [1, 3, 5]
    assert is_scheduled(habit, datetime(2024, 1, 1, 23, 30))


def test_week_start_is_monday():
    assert week_start(date(2024, 1, 7)) == date(2024, 1, 1)
    assert week_start(date(2024, 1, 8)) == date(2024, 1, 8)


def test_history_contains_active_experiments():
    habit = Habit(name="Run", identity="Athlete", experiments=["Shoes by the door"])
    assert habit.experiment_history == ["Shoes by the door"]

    assert habit.add_experiment("Run with a friend")
    assert not habit.add_experiment("   ")
    assert habit.remove_experiment("Shoes by the door")
    assert habit.experiments == ["Run with a friend"]
    assert set(habit.experiment_history) >= set(habit.experiments)
    assert habit.past_experiments == ["Shoes by the door"]


def test_experiment_with_separator_is_refused():
    habit = Habit(name="Read", identity="Reader")
    assert not habit.add_experiment("Tea|Book")
    assert habit.experiments == []
    assert habit.experiment_history == []


def test_out_of_range_days_are_dropped():
    habit = make_habit(days={0, 6, 7, -1})
    assert habit.selected_days == {0, 6}


def test_sort_by_rank_then_creation():
    late = make_habit(created=date(2024, 2, 1), sort_order=1, name="late")
    early = make_habit(created=date(2024, 1, 1), sort_order=1, name="early")
    first = make_habit(created=date(2024, 3, 1), sort_order=0, name="first")
    assert [h.name for h in sort_habits([late, early, first])] == ["first", "early", "late"]


def test_habit_dict_round_trip():
    habit = make_habit(days={2, 4}, experiments=["a"], sort_order=3)
    again = Habit.from_dict(habit.to_dict())
    assert again == habit


def test_retrospective_normalized_to_monday():
    retro = WeeklyRetrospective(week_start=date(2024, 1, 5), notes="ok")
    assert retro.week_start == date(2024, 1, 1)
    assert WeeklyRetrospective.from_dict(retro.to_dict()).week_start == date(2024, 1, 1)


def test_habit_payload_round_trip():
    habit = make_habit(days={1})
    payload = habit_payload(habit, done_on(habit, date(2024, 1, 1)))
    again, completions = read_habit_payload(payload)
    assert again.id == habit.id
    assert [c.date.date() for c in completions] == [date(2024, 1, 1)]
    assert completions[0].habit_id == habit.id


def test_read_habit_payload_rejects_missing_habit():
    with pytest.raises(KeyError):
        read_habit_payload({"completions": []})


def test_parse_day():
    assert parse_day(None) is None
    assert parse_day("2024-01-08") == date(2024, 1, 8)
    assert parse_day("2024-01-08T22:15:00") == date(2024, 1, 8)
    with pytest.raises(ValueError):
        parse_day("yesterday")
