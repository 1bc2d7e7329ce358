#!/usr/bin/env python3
import logging
from datetime import date

from completions import CompletionIndex
from config import load_settings
from logging_setup import setup_logger
from models import parse_day, read_habit_payload
from rates import habit_stats, today_percentage, week_dates, window_stats
from reply_server import decode_request, encode, error_response, serve

logger = logging.getLogger("progress_tracker")


def summarize(stats):
    return {
        "completed": stats.completed,
        "not_completed": stats.not_completed,
        "potential_total": stats.potential_total,
        "actual_rate": stats.actual_rate,
        "potential_rate": stats.potential_rate,
    }


def compute_rates(tracked, start, end, today):
    """
    Per-habit rates over [start or creation, end or today] and the pooled
    rates over [start or this Monday, end or this Sunday].
    """
    per_habit = []
    for habit, index in tracked:
        entry = summarize(habit_stats(habit, index, start, end, today))
        entry["id"] = habit.id
        entry["label"] = habit.identity
        per_habit.append(entry)

    week = week_dates(today)
    pooled_start = start or week[0]
    pooled_end = end or week[-1]
    pooled = summarize(window_stats(tracked, pooled_start, pooled_end, today))
    pooled["start"] = pooled_start.isoformat()
    pooled["end"] = pooled_end.isoformat()

    return {
        "status": "ok",
        "habits": per_habit,
        "pooled": pooled,
        "today_percentage": today_percentage(tracked, today),
    }


def validate_request(request):
    """(tracked, start, end, today) or an error response."""
    if request.get("request_type") != "completion_rates":
        return error_response("Unsupported request_type. Expected 'completion_rates'.")

    entries = request.get("habits")
    if not isinstance(entries, list):
        return error_response("'habits' must be a list of habit payloads.")

    tracked = []
    for idx, entry in enumerate(entries):
        try:
            habit, completions = read_habit_payload(entry)
        except (KeyError, TypeError, ValueError) as exc:
            return error_response(f"Habit at index {idx} is invalid: {exc}")
        tracked.append((habit, CompletionIndex(completions)))

    try:
        start = parse_day(request.get("start"))
        end = parse_day(request.get("end"))
        today = parse_day(request.get("today")) or date.today()
    except (TypeError, ValueError):
        return error_response("'start', 'end' and 'today' must be ISO dates.")
    if start and end and start > end:
        return error_response("'start' must not be after 'end'.")

    return tracked, start, end, today


def handle_message(raw_bytes):
    request, error = decode_request(raw_bytes)
    if error is not None:
        return encode(error)
    checked = validate_request(request)
    if isinstance(checked, dict):
        return encode(checked)
    return encode(compute_rates(*checked))


def main():
    settings = load_settings()
    setup_logger(settings.log_file, settings.log_level)
    serve(settings.ports["progress"], handle_message, "Completion Rates")


if __name__ == "__main__":
    main()
