"""Coaching prompt for a habit, optionally enriched with community experiment examples."""

from __future__ import annotations

import csv
import logging
from datetime import date
from typing import Iterable, List, Optional

import requests

from completions import CompletionIndex
from models import Habit, WeeklyRetrospective, as_day
from rates import completion_rate
from streaks import best_streak, current_streak

logger = logging.getLogger(__name__)

EXAMPLES_UNAVAILABLE = "Unable to load experiment examples."
PLACEHOLDER = "(not specified)"
EXAMPLE_FIELDS = ["Experiment", "Identity", "Result", "Why", "Framework"]


def fetch_experiment_examples(url: str, timeout: float = 10) -> str:
    """GET the published examples sheet (CSV) and format it for the prompt."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Error fetching experiment examples: %s", exc)
        return EXAMPLES_UNAVAILABLE
    return format_experiment_examples(response.content.decode("utf-8", errors="replace"))


def parse_csv_line(line: str) -> List[str]:
    try:
        row = next(csv.reader([line]), [])
    except csv.Error:
        return []
    return [cell.strip() for cell in row]


def format_experiment_examples(csv_text: str) -> str:
    lines = csv_text.splitlines()
    if len(lines) <= 1:
        return csv_text

    blocks = []
    for line in lines[1:]:
        if not line.strip():
            continue
        columns = parse_csv_line(line)
        if not columns:
            continue
        values = [columns[i] if i < len(columns) else "" for i in range(len(EXAMPLE_FIELDS))]
        if not any(values[:4]):
            continue

        body = "\n".join(
            f"• {label}: {value or PLACEHOLDER}" for label, value in zip(EXAMPLE_FIELDS, values)
        )
        blocks.append(f"Example {len(blocks) + 1}:\n{body}")

    if not blocks:
        # raw text helps spot a sheet whose columns moved
        return csv_text
    return "\n\n".join(blocks)


def _bullets(items: Iterable[str]) -> str:
    items = list(items)
    return "\n".join(f"- {item}" for item in items) if items else "None"


def _retrospective_lines(retrospectives: Iterable[WeeklyRetrospective], limit: int = 4) -> str:
    recent = sorted(retrospectives, key=lambda r: r.week_start, reverse=True)[:limit]
    if not recent:
        return "None"
    return "\n".join(
        f"- Week of {r.week_start.strftime('%b')} {r.week_start.day}, {r.week_start.year}: {r.notes or 'No notes'}"
        for r in recent
    )


def build_prompt(habit: Habit, index: CompletionIndex, retrospectives: Iterable[WeeklyRetrospective] = (),
                 examples: Optional[str] = None, today=None) -> str:
    today = as_day(today or date.today())
    rate = completion_rate(habit, index, today=today)
    streak = current_streak(habit, index, as_of=today)
    best = best_streak(habit, index, today=today)
    days_tracking = (today - as_day(habit.created_date)).days

    examples_section = ""
    if examples:
        examples_section = (
            "\n\nEXPERIMENT EXAMPLES DATABASE:\n"
            "Here are proven experiment examples from other habit builders:\n\n"
            f"{examples}\n"
        )

    return (
        f'I\'m building the identity of "{habit.identity}" by doing: "{habit.name}". '
        "I am already using an app to track progress!\n\n"
        "PERFORMANCE DATA:\n"
        f"• {days_tracking} days tracking | {len(habit.selected_days)}x/week schedule\n"
        f"• Current streak: {streak} days | Best: {best} days\n"
        f"• Completion rate: {rate}% ({len(index)} total)\n\n"
        "ACTIVE EXPERIMENTS:\n"
        f"{_bullets(habit.experiments)}\n\n"
        "PAST EXPERIMENTS (what didn't stick):\n"
        f"{_bullets(habit.past_experiments)}\n\n"
        "RECENT REFLECTIONS:\n"
        f"{_retrospective_lines(retrospectives)}{examples_section}\n"
        f"TASK: Suggest 3-5 experiments to improve my {rate}% completion rate "
        "using the 4 Laws of Behavior Change:\n"
        "1. OBVIOUS (cues & environment)\n"
        "2. ATTRACTIVE (temptation bundling & social proof)\n"
        "3. EASY (2-min rule & friction reduction)\n"
        "4. SATISFYING (immediate rewards & tracking)\n\n"
        'Format each as: "[LAW] - Specific action" with brief why. Avoid repeating past '
        "experiments. Focus on my biggest gaps based on performance and reflections."
    )
