import io
import json
import threading
from datetime import date, timedelta

import progress_tracker
import reply_server
import streaks_service
import trend_analyzer
from conftest import done_on, make_habit
from models import habit_payload


def every_day(start, end):
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def call(handler, request):
    return json.loads(handler(json.dumps(request).encode("utf-8")).decode("utf-8"))


# ---------- streaks ----------
def test_streaks_for_a_habit():
    habit = make_habit(days={1, 3, 5})
    payload = habit_payload(habit, done_on(habit, date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)))
    payload["as_of"] = "2024-01-08"
    response = streaks_service.process_request(payload)
    assert response == {"ok": True, "result": {"current_streak": 3, "best_streak": 3}}


def test_streaks_lookback_limits_best():
    habit = make_habit()
    payload = habit_payload(habit, done_on(habit, *every_day(date(2024, 1, 1), date(2024, 1, 5))))
    payload.update({"as_of": "2024-01-10", "lookback_days": 7})
    result = streaks_service.process_request(payload)["result"]
    assert result == {"current_streak": 0, "best_streak": 2}


def test_streaks_rejects_bad_input():
    habit = make_habit()
    assert streaks_service.process_request([]) == {"ok": False, "error": "Request must be a JSON object."}
    assert not streaks_service.process_request({"completions": []})["ok"]
    bad_date = habit_payload(habit, [])
    bad_date["as_of"] = "soon"
    assert streaks_service.process_request(bad_date)["error"] == "'as_of' must be an ISO date."
    bad_lookback = habit_payload(habit, [])
    bad_lookback["lookback_days"] = 0
    assert not streaks_service.process_request(bad_lookback)["ok"]
    bad_stamps = {"habit": habit.to_dict(), "completions": ["not a time"]}
    assert "Invalid habit payload" in streaks_service.process_request(bad_stamps)["error"]


# ---------- trend ----------
def trend_request(habit, days, **extra):
    request = habit_payload(habit, done_on(habit, *days))
    request.update({"request_type": "habit_trend"}, **extra)
    return request


def test_weekly_trend():
    habit = make_habit(created=date(2024, 1, 1))
    request = trend_request(habit, every_day(date(2024, 1, 1), date(2024, 1, 21)), today="2024-01-21")
    response = call(trend_analyzer.handle_message, request)
    assert response["status"] == "ok"
    assert response["habit_id"] == habit.id
    assert response["period"] == "week"
    assert response["values"] == [100.0, 100.0, 100.0]
    assert response["moving_average"] == [100.0, 100.0, 100.0]
    assert response["labels"] == ["Week 1", "Week 2", "Week 3"]
    assert response["average"] == 100


def test_monthly_trend_respects_max_periods():
    habit = make_habit(created=date(2023, 1, 1))
    request = trend_request(habit, [date(2024, 1, 2)], period="month", max_periods=4, today="2024-03-10")
    response = call(trend_analyzer.handle_message, request)
    assert response["table_labels"] == ["Dec 2023", "Jan 2024", "Feb 2024", "Mar 2024"]
    assert len(response["moving_average"]) == 4


def test_trend_output_is_deterministic():
    habit = make_habit()
    raw = json.dumps(trend_request(habit, [date(2024, 1, 2)], today="2024-01-10")).encode()
    assert trend_analyzer.handle_message(raw) == trend_analyzer.handle_message(raw)
    assert b": " not in trend_analyzer.handle_message(raw)


def test_trend_errors():
    habit = make_habit()
    assert trend_analyzer.handle_message(b"{nope") == \
        b'{"error":"Invalid JSON in request body.","status":"error"}'
    assert call(trend_analyzer.handle_message, [1, 2])["error"] == "Request must be a JSON object."
    wrong = trend_request(habit, [])
    wrong["request_type"] = "time_series_trend"
    assert call(trend_analyzer.handle_message, wrong)["status"] == "error"
    assert "period" in call(trend_analyzer.handle_message, trend_request(habit, [], period="day"))["error"]
    assert call(trend_analyzer.handle_message, trend_request(habit, [], max_periods=0))["status"] == "error"
    assert call(trend_analyzer.handle_message, {"request_type": "habit_trend"})["status"] == "error"


def test_quit_signal():
    assert reply_server.is_quit_signal(b" Q \n")
    assert reply_server.is_quit_signal(b'"q"')
    assert not reply_server.is_quit_signal(b'{"request_type": "habit_trend"}')
    assert not reply_server.is_quit_signal(b"\xff")


# ---------- completion rates ----------
def rates_request(**extra):
    mwf = make_habit(days={1, 3, 5}, identity="Reader")
    daily = make_habit(identity="Athlete")
    request = {
        "request_type": "completion_rates",
        "habits": [
            habit_payload(mwf, done_on(mwf, date(2024, 1, 8))),
            habit_payload(daily, done_on(daily, date(2024, 1, 9))),
        ],
        "today": "2024-01-10",
    }
    request.update(extra)
    return request


def test_completion_rates():
    response = call(progress_tracker.handle_message, rates_request())
    assert response["status"] == "ok"

    reader = response["habits"][0]
    assert reader["label"] == "Reader"
    assert (reader["completed"], reader["not_completed"], reader["potential_total"]) == (1, 3, 5)
    assert (reader["actual_rate"], reader["potential_rate"]) == (25, 40)

    pooled = response["pooled"]
    assert (pooled["start"], pooled["end"]) == ("2024-01-08", "2024-01-14")
    assert (pooled["actual_rate"], pooled["potential_rate"]) == (66, 90)
    assert response["today_percentage"] == 0


def test_completion_rates_with_explicit_window():
    response = call(progress_tracker.handle_message, rates_request(start="2024-01-08", end="2024-01-09"))
    reader = response["habits"][0]
    assert (reader["completed"], reader["not_completed"]) == (1, 0)
    assert response["pooled"]["actual_rate"] == 66


def test_completion_rates_errors():
    assert call(progress_tracker.handle_message, {"request_type": "progress_goal"})["status"] == "error"
    assert "'habits'" in call(progress_tracker.handle_message, {"request_type": "completion_rates"})["error"]
    broken = rates_request()
    broken["habits"].append({"completions": []})
    assert "index 2" in call(progress_tracker.handle_message, broken)["error"]
    backwards = rates_request(start="2024-01-09", end="2024-01-08")
    assert call(progress_tracker.handle_message, backwards)["error"] == "'start' must not be after 'end'."
    assert call(progress_tracker.handle_message, rates_request(today="tomorrow"))["status"] == "error"


def test_no_habits_means_empty_rates():
    response = call(progress_tracker.handle_message, {"request_type": "completion_rates", "habits": [],
                                                      "today": "2024-01-10"})
    assert response["habits"] == []
    assert response["pooled"]["potential_rate"] == 100
    assert response["today_percentage"] == 0


def test_console_quit_sets_stop_flag():
    stop = threading.Event()
    streaks_service.watch_console(stop, io.StringIO("hello\n Q \n"))
    assert stop.is_set()

    untouched = threading.Event()
    streaks_service.watch_console(untouched, io.StringIO("quit\n"))
    assert not untouched.is_set()
