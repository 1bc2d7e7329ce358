from datetime import date, timedelta

import pytest

from completions import CompletionIndex
from conftest import index_for, make_habit
from trends import (
    moving_average,
    period_bounds,
    periods_since_creation,
    shift_months,
    trend_series,
    year_overview,
)


def every_day(start, end):
    days = []
    while start <= end:
        days.append(start)
        start += timedelta(days=1)
    return days


def test_moving_average_of_constant_is_constant():
    assert moving_average([40.0] * 5) == [40.0] * 5
    assert moving_average([70.0]) == [70.0]


def test_moving_average_partial_then_trailing():
    assert moving_average([10, 20, 30, 40]) == [10, 15, 20, 30]
    assert moving_average([10, 20, 30, 40], window=1) == [10, 20, 30, 40]
    assert moving_average([]) == []


def test_moving_average_rejects_bad_window():
    with pytest.raises(ValueError):
        moving_average([1, 2], window=0)


def test_shift_months_crosses_years():
    assert shift_months(date(2024, 1, 15), -1) == date(2023, 12, 1)
    assert shift_months(date(2023, 12, 31), 1) == date(2024, 1, 1)


def test_period_bounds():
    assert period_bounds("week", date(2024, 1, 17), 0) == (date(2024, 1, 15), date(2024, 1, 21))
    assert period_bounds("week", date(2024, 1, 17), 2) == (date(2024, 1, 1), date(2024, 1, 7))
    assert period_bounds("month", date(2024, 3, 10), 1) == (date(2024, 2, 1), date(2024, 2, 29))
    with pytest.raises(ValueError):
        period_bounds("year", date(2024, 1, 1), 0)


def test_period_count_is_clamped():
    habit = make_habit(created=date(2023, 1, 1))
    assert periods_since_creation(habit, "week", 10, today=date(2024, 1, 21)) == 10
    fresh = make_habit(created=date(2024, 1, 21))
    assert periods_since_creation(fresh, "week", 10, today=date(2024, 1, 21)) == 1
    assert periods_since_creation(fresh, "month", 10, today=date(2024, 1, 21)) == 1


def test_weekly_series_all_done():
    habit = make_habit(created=date(2024, 1, 1))
    index = index_for(habit, *every_day(date(2024, 1, 1), date(2024, 1, 21)))
    series = trend_series(habit, index, "week", today=date(2024, 1, 21))
    assert series.values == [100.0, 100.0, 100.0]
    assert series.moving_average == [100.0, 100.0, 100.0]
    assert series.labels == ["Week 1", "Week 2", "Week 3"]
    assert series.period_starts[0] == date(2024, 1, 1)
    assert series.average == 100
    assert series.title == "3-Week Trend"


def test_week_in_progress_only_judges_past_days():
    habit = make_habit(created=date(2024, 1, 1))
    index = index_for(habit, date(2024, 1, 15), date(2024, 1, 16))
    series = trend_series(habit, index, "week", today=date(2024, 1, 17))
    assert series.values == [0.0, 0.0, 100.0]
    assert series.moving_average[-1] == pytest.approx(100 / 3)


def test_monthly_series_and_table_rows():
    habit = make_habit(created=date(2024, 1, 1))
    index = index_for(habit, *every_day(date(2024, 2, 1), date(2024, 2, 29)))
    series = trend_series(habit, index, "month", today=date(2024, 3, 10))
    assert series.labels == ["Jan", "Feb", "Mar"]
    assert series.table_labels == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert series.values == [0.0, 100.0, 0.0]
    assert series.average == 33
    assert series.rows() == [("Jan 2024", "0%"), ("Feb 2024", "100%"), ("Mar 2024", "0%")]


def test_unknown_period_kind():
    with pytest.raises(ValueError):
        trend_series(make_habit(), CompletionIndex(), "day", today=date(2024, 1, 1))


def test_year_overview():
    habit = make_habit(created=date(2024, 1, 1))
    index = index_for(habit, *every_day(date(2024, 2, 1), date(2024, 2, 29)))
    overview = year_overview([(habit, index)], 2024, today=date(2024, 3, 10))
    assert len(overview) == 12
    assert overview[0] == ("Jan", 0.0)
    assert overview[1] == ("Feb", 100.0)
    assert overview[11] == ("Dec", 0.0)
