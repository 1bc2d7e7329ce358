"""Starter habits for a fresh store and a demo data set."""

import logging
import random
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from backup_csv import BackupData
from models import ALL_DAYS, Completion, Habit, WeeklyRetrospective, is_scheduled, week_start

logger = logging.getLogger(__name__)

DEFAULT_HABITS = [
    ("Open this app every day", "Disciplined", ["first thing when I open my phone in the morning"]),
    ("Be thankful to be alive!", "Humble", ["After I open this app"]),
    ("Note my feelings during the day", "Present", ["Before I sleep"]),
]

# name, identity, experiments, weekdays (0 = Sunday), base completion rate
SAMPLE_HABITS = [
    ("Stay curious", "Reader", ["Read during breaks", "Keep book visible"], [1, 2, 3, 4, 5, 6, 0], 0.85),
    ("1500 Active calories", "Athlete", ["Morning workout", "Track with a watch"], [1, 2, 3, 4, 5], 0.75),
    ("Control mouth", "Temperance", ["No junk food in house", "Drink water first"], [1, 2, 3, 4, 5, 6, 0], 0.70),
    ("Control feelings", "Present", ["5-minute meditation", "Deep breathing"], [1, 2, 3, 4, 5], 0.80),
    ("Build build build", "Entrepreneur", ["Daily coding session", "Ship small features"], [1, 2, 3, 4, 5], 0.65),
]
SAMPLE_DAYS = 90
SAMPLE_RETROSPECTIVE = (
    "Great week! I managed to stay consistent with most habits. "
    "Need to work on better sleep schedule."
)


def seed_default_habits(repo) -> List[Habit]:
    """Create the starter habits, but only in an empty store."""
    if not repo.is_empty():
        return []
    created = []
    for position, (name, identity, experiments) in enumerate(DEFAULT_HABITS, start=1):
        habit, error = repo.add_habit(name, identity, set(ALL_DAYS), experiments, sort_order=position)
        if error:
            logger.error("Error saving default habits: %s", error)
            break
        created.append(habit)
    return created


def build_sample_data(today: Optional[date] = None, rng: Optional[random.Random] = None) -> BackupData:
    """Five habits with ~90 days of history that slowly improves."""
    today = today or date.today()
    rng = rng or random.Random()
    start = today - timedelta(days=SAMPLE_DAYS)

    data = BackupData()
    for name, identity, experiments, days, rate in SAMPLE_HABITS:
        habit = Habit(
            name=name,
            identity=identity,
            experiments=list(experiments),
            selected_days=set(days),
            created_date=datetime.combine(start, time(9, 0)),
        )
        completions = []
        for offset in range(-SAMPLE_DAYS, 1):
            day = today + timedelta(days=offset)
            if not is_scheduled(habit, day):
                continue
            progress = (offset + SAMPLE_DAYS) / SAMPLE_DAYS
            if rng.random() < rate + progress * 0.15:
                completions.append(Completion(habit.id, datetime.combine(day, time(20, 0))))
        data.habits.append(habit)
        data.completions[habit.id] = completions

    last_week = week_start(today) - timedelta(days=7)
    data.retrospectives.append(WeeklyRetrospective(week_start=last_week, notes=SAMPLE_RETROSPECTIVE))
    return data


def load_sample_data(repo, today: Optional[date] = None, rng: Optional[random.Random] = None) -> Optional[str]:
    """Replace the whole store with the demo data set."""
    return repo.replace_all(build_sample_data(today, rng), today=today)
