"""Microservice for current and best streaks of one habit over its scheduled days."""

import logging
import sys
import threading

from completions import CompletionIndex
from config import load_settings
from logging_setup import setup_logger
from models import parse_day, read_habit_payload
from reply_server import bind
from streaks import STREAK_LOOKBACK_DAYS, best_streak, current_streak

logger = logging.getLogger("streaks_service")

POLL_MS = 1000


def _error(message):
    return {"ok": False, "error": message}


def _extract_habit(payload):
    """(habit, completions, None) or (None, None, message)."""
    if not isinstance(payload.get("habit"), dict):
        return None, None, "Request must contain a 'habit' object."
    if not isinstance(payload.get("completions", []), list):
        return None, None, "'completions' must be a list of timestamps."
    try:
        habit, completions = read_habit_payload(payload)
    except (KeyError, TypeError, ValueError) as exc:
        return None, None, f"Invalid habit payload: {exc}"
    return habit, completions, None


def process_request(payload: dict) -> dict:
    """
    payload: {"habit": {...}, "completions": [iso, ...], "as_of"?: "YYYY-MM-DD",
              "lookback_days"?: int}
    returns {"ok": True, "result": {...}} or {"ok": False, "error": ...}
    """
    if not isinstance(payload, dict):
        return _error("Request must be a JSON object.")
    habit, completions, error = _extract_habit(payload)
    if error:
        return _error(error)
    try:
        as_of = parse_day(payload.get("as_of"))
    except (TypeError, ValueError):
        return _error("'as_of' must be an ISO date.")
    lookback = payload.get("lookback_days", STREAK_LOOKBACK_DAYS)
    if isinstance(lookback, bool) or not isinstance(lookback, int) or lookback < 1:
        return _error("'lookback_days' must be a positive integer.")

    index = CompletionIndex(completions)
    return {
        "ok": True,
        "result": {
            "current_streak": current_streak(habit, index, as_of=as_of),
            "best_streak": best_streak(habit, index, lookback_days=lookback, today=as_of),
        },
    }


def watch_console(stop: threading.Event, stream=None):
    """Set ``stop`` once a line reading 'q' arrives on stdin."""
    for line in stream or sys.stdin:
        if line.strip().lower() == "q":
            logger.info("Shutdown requested from the console")
            stop.set()
            return


def serve_requests(socket, stop: threading.Event):
    while not stop.is_set():
        if not socket.poll(timeout=POLL_MS):
            continue
        try:
            payload = socket.recv_json()
        except ValueError:
            socket.send_json(_error("Invalid JSON in request body."))
            continue
        try:
            response = process_request(payload)
        except Exception as exc:
            logger.exception("Streak request failed")
            response = _error(f"Internal error: {exc}")
        socket.send_json(response)


def run_service(port):
    context, socket = bind(port)
    logger.info("Streaks microservice listening on port %s", port)
    print("Press 'q' then Enter to stop the microservice...")
    stop = threading.Event()
    threading.Thread(target=watch_console, args=(stop,), daemon=True).start()
    try:
        serve_requests(socket, stop)
    except KeyboardInterrupt:
        logger.info("Interrupted via keyboard")
    finally:
        logger.info("Shutting down streaks microservice")
        socket.close()
        context.term()


def main(port=None):
    settings = load_settings()
    setup_logger(settings.log_file, settings.log_level)
    run_service(port or settings.ports["streaks"])


if __name__ == "__main__":
    port = None
    if len(sys.argv) > 1:
        try:
            port = int(sys.argv[1])
        except ValueError:
            print(f"Invalid port '{sys.argv[1]}', using the configured port instead.")
    main(port)
