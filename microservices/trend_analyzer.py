#!/usr/bin/env python3
"""
Habit trend service.

Request:
    {"request_type": "habit_trend", "period": "week" | "month",
     "max_periods": 10, "habit": {...}, "completions": [iso, ...],
     "today": "YYYY-MM-DD"}

Reply: the weekly or monthly percentages oldest first, their 3-point moving
average, chart and table labels and the rounded mean.
"""

import logging

from completions import CompletionIndex
from config import load_settings
from logging_setup import setup_logger
from models import parse_day, read_habit_payload
from reply_server import decode_request, encode, error_response, serve
from trends import DEFAULT_MAX_PERIODS, PERIOD_KINDS, trend_series

logger = logging.getLogger("trend_analyzer")


def compute_trend(habit, completions, period: str, max_periods: int, today=None):
    series = trend_series(habit, CompletionIndex(completions), period, max_periods, today)
    return {
        "title": series.title,
        "labels": series.labels,
        "table_labels": series.table_labels,
        "values": [round(v, 2) for v in series.values],
        "moving_average": [round(v, 2) for v in series.moving_average],
        "average": series.average,
    }


def validate_request(request):
    """(period, max_periods, habit, completions, today) or an error response."""
    if request.get("request_type") != "habit_trend":
        return error_response("Unsupported request_type. Expected 'habit_trend'.")

    period = request.get("period", "week")
    if period not in PERIOD_KINDS:
        return error_response("Invalid 'period'. Expected 'week' or 'month'.")

    max_periods = request.get("max_periods", DEFAULT_MAX_PERIODS)
    if isinstance(max_periods, bool) or not isinstance(max_periods, int) or max_periods < 1:
        return error_response("'max_periods' must be a positive integer.")

    try:
        habit, completions = read_habit_payload(request)
    except (KeyError, TypeError, ValueError) as exc:
        return error_response(f"Invalid habit payload: {exc}")

    try:
        today = parse_day(request.get("today"))
    except (TypeError, ValueError):
        return error_response("'today' must be an ISO date.")

    return period, max_periods, habit, completions, today


def handle_message(raw_bytes):
    """Pure handler, bytes in and bytes out."""
    request, error = decode_request(raw_bytes)
    if error is not None:
        return encode(error)

    checked = validate_request(request)
    if isinstance(checked, dict):
        return encode(checked)
    period, max_periods, habit, completions, today = checked

    response = {"status": "ok", "period": period, "habit_id": habit.id}
    response.update(compute_trend(habit, completions, period, max_periods, today))
    return encode(response)


def main():
    settings = load_settings()
    setup_logger(settings.log_file, settings.log_level)
    serve(settings.ports["trend"], handle_message, "Habit Trend Analyzer")


if __name__ == "__main__":
    main()
