"""Helpers to call the ZeroMQ analytics microservices from the command line app."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import List, Optional

import zmq

from config import DEFAULT_PORTS, load_settings
from models import habit_payload

logger = logging.getLogger(__name__)

_CONTEXT = zmq.Context.instance()


# ---------- Low-level send helpers ----------
def _make_socket(port: int, timeout_ms: Optional[int] = None):
    if timeout_ms is None:
        timeout_ms = load_settings().service_timeout_ms
    socket = _CONTEXT.socket(zmq.REQ)
    socket.setsockopt(zmq.RCVTIMEO, timeout_ms)
    socket.setsockopt(zmq.SNDTIMEO, timeout_ms)
    socket.setsockopt(zmq.LINGER, 0)
    socket.connect(f"tcp://localhost:{port}")
    return socket


def _send_json(port: int, payload: dict, timeout_ms: Optional[int] = None):
    socket = _make_socket(port, timeout_ms)
    try:
        socket.send_json(payload)
        return socket.recv_json(), None
    except zmq.error.Again:
        logger.warning("Timed out contacting service on port %s", port)
        return None, f"Timed out contacting service on port {port}."
    except (zmq.ZMQError, ValueError) as exc:
        logger.warning("Service error on port %s: %s", port, exc)
        return None, f"Service error on port {port}: {exc}"
    finally:
        socket.close()


def _send_bytes(port: int, payload: dict, timeout_ms: Optional[int] = None):
    socket = _make_socket(port, timeout_ms)
    try:
        socket.send_string(json.dumps(payload))
        raw = socket.recv()
        return json.loads(raw.decode("utf-8")), None
    except zmq.error.Again:
        logger.warning("Timed out contacting service on port %s", port)
        return None, f"Timed out contacting service on port {port}."
    except (zmq.ZMQError, ValueError) as exc:
        logger.warning("Service error on port %s: %s", port, exc)
        return None, f"Service error on port {port}: {exc}"
    finally:
        socket.close()


# ---------- Data shaping helpers ----------
def streaks_request(habit, completions, as_of: Optional[date] = None) -> dict:
    payload = habit_payload(habit, completions)
    if as_of is not None:
        payload["as_of"] = as_of.isoformat()
    return payload


def trend_request(habit, completions, period: str = "week", max_periods: int = 10,
                  today: Optional[date] = None) -> dict:
    payload = habit_payload(habit, completions)
    payload.update({
        "request_type": "habit_trend",
        "period": period,
        "max_periods": max_periods,
    })
    if today is not None:
        payload["today"] = today.isoformat()
    return payload


def rates_request(repo, start: Optional[date] = None, end: Optional[date] = None,
                  today: Optional[date] = None) -> dict:
    """All habits with their completions, for the completion-rates service."""
    by_habit = repo.completions_by_habit()
    payload = {
        "request_type": "completion_rates",
        "habits": [habit_payload(h, by_habit.get(h.id, [])) for h in repo.list_habits()],
    }
    for key, value in (("start", start), ("end", end), ("today", today)):
        if value is not None:
            payload[key] = value.isoformat()
    return payload


# ---------- Microservice callers ----------
def streaks_for_habit(habit, completions, as_of: Optional[date] = None,
                      port: int = DEFAULT_PORTS["streaks"]):
    """Call the streaks microservice for one habit and its completions."""
    response, error = _send_json(port, streaks_request(habit, completions, as_of))
    if error:
        return None, error
    if not response.get("ok"):
        return None, response.get("error", "Unknown streaks error.")
    return response.get("result", {}), None


def trend_overview(habit, completions, period: str = "week", max_periods: int = 10,
                   today: Optional[date] = None, port: int = DEFAULT_PORTS["trend"]):
    payload = trend_request(habit, completions, period, max_periods, today)
    response, error = _send_bytes(port, payload)
    if error:
        return None, error
    if response.get("status") != "ok":
        return None, response.get("error", "Unknown trend analyzer error.")
    return response, None


def rates_overview(repo, start: Optional[date] = None, end: Optional[date] = None,
                   today: Optional[date] = None, port: int = DEFAULT_PORTS["progress"]):
    response, error = _send_bytes(port, rates_request(repo, start, end, today))
    if error:
        return None, error
    if response.get("status") != "ok":
        return None, response.get("error", "Unknown completion rates error.")
    return response, None


# ---------- Public aggregation ----------
def gather_microservice_snapshot(repo, today: Optional[date] = None, ports: Optional[dict] = None):
    """
    Collects all analytics data in one call so the CLI can print a report.
    Returns a dict with keys: rates, streaks, trend.
    """
    ports = ports or load_settings().ports
    snapshot = {
        "rates": {"response": None, "error": None},
        "streaks": {"entries": [], "error": None},
        "trend": {"entries": [], "error": None},
    }

    rates_resp, rates_err = rates_overview(repo, today=today, port=ports["progress"])
    snapshot["rates"]["response"] = rates_resp
    snapshot["rates"]["error"] = rates_err

    by_habit = repo.completions_by_habit()
    habits: List = repo.list_habits()
    for habit in habits:
        completions = by_habit.get(habit.id, [])
        result, streak_err = streaks_for_habit(habit, completions, as_of=today, port=ports["streaks"])
        snapshot["streaks"]["entries"].append(
            {"habit": habit, "result": result, "error": streak_err}
        )
        trend, trend_err = trend_overview(habit, completions, today=today, port=ports["trend"])
        snapshot["trend"]["entries"].append(
            {"habit": habit, "response": trend, "error": trend_err}
        )

    return snapshot
