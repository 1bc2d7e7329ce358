# backup_csv.py
"""
CSV backup of habits, their completions and weekly retrospectives.

Layout (no header row)::

    "name","identity",created,"days","completions","experiments","history",sort_order
    ...
    ---RETROSPECTIVES---
    week_start,"notes"

``days`` is a comma-joined list of weekday indexes (0 = Sunday), the list
fields are pipe-joined. Older backups have 7 columns (no sort order) or 6
columns (name, identity, created, streak, completions, experiments).
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Set

from models import ALL_DAYS, LIST_SEPARATOR, Completion, Habit, WeeklyRetrospective, as_day, sort_habits

logger = logging.getLogger(__name__)

RETRO_SENTINEL = "---RETROSPECTIVES---"
MIME_TYPE = "text/csv"

# tried in order
TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
]


def backup_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"habits_backup_{int(now.timestamp())}.csv"


def format_timestamp(value: datetime) -> str:
    """ISO-8601 with millisecond precision, e.g. 2024-01-01T08:30:00.250"""
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}"


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Try each supported format; return None if all fail."""
    raw = (raw or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1]
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def _quote(value: str) -> str:
    return '"' + str(value).replace('"', '""') + '"'


# =========================
# Export
# =========================

def _habit_row(habit: Habit, completions: Iterable[Completion]) -> str:
    stamps = sorted(c.date for c in completions)
    fields = [
        _quote(habit.name),
        _quote(habit.identity),
        format_timestamp(habit.created_date),
        _quote(",".join(str(d) for d in sorted(habit.selected_days))),
        "|".join(format_timestamp(s) for s in stamps),
        _quote(LIST_SEPARATOR.join(habit.experiments)),
        _quote(LIST_SEPARATOR.join(habit.experiment_history)),
        str(habit.sort_order),
    ]
    return ",".join(fields)


def _retrospective_row(retro: WeeklyRetrospective) -> str:
    start = datetime.combine(retro.week_start, datetime.min.time())
    return ",".join([format_timestamp(start), _quote(retro.notes)])


def export_backup(
    habits: Iterable[Habit],
    completions: Mapping[str, Iterable[Completion]],
    retrospectives: Iterable[WeeklyRetrospective] = (),
) -> str:
    """Serialize everything to backup text; habits ordered by sort order then creation."""
    lines = [_habit_row(h, completions.get(h.id, ())) for h in sort_habits(habits)]
    lines.append(RETRO_SENTINEL)
    for retro in sorted(retrospectives, key=lambda r: r.week_start):
        lines.append(_retrospective_row(retro))
    return "\n".join(lines) + "\n"


# =========================
# Import
# =========================

@dataclass
class BackupData:
    habits: List[Habit] = field(default_factory=list)
    completions: Dict[str, List[Completion]] = field(default_factory=dict)
    retrospectives: List[WeeklyRetrospective] = field(default_factory=list)
    skipped_rows: int = 0


def _split_list(raw: str) -> List[str]:
    return [part for part in (raw or "").split(LIST_SEPARATOR) if part.strip()]


def _parse_days(raw: str) -> Set[int]:
    days = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            continue
        if 0 <= value <= 6:
            days.add(value)
    # blank selection means the row predates weekday scheduling
    return days or set(ALL_DAYS)


def _parse_sort_order(raw: str) -> int:
    try:
        return int(raw.strip())
    except (AttributeError, ValueError):
        return 0


def _parse_habit_row(row: List[str]):
    """Return (habit, completions) or None when the row has too few columns."""
    if len(row) < 6:
        return None

    name, identity, created_raw = row[0], row[1], row[2]
    if len(row) == 6:
        # first release: name, identity, created, streak, completions, experiments
        days = set(ALL_DAYS)
        completions_raw, experiments_raw = row[4], row[5]
        history_raw = None
        sort_raw = ""
    else:
        days = _parse_days(row[3])
        completions_raw, experiments_raw = row[4], row[5]
        history_raw = row[6]
        sort_raw = row[7] if len(row) >= 8 else ""

    experiments = _split_list(experiments_raw)
    history = _split_list(history_raw) if history_raw is not None else list(experiments)

    habit = Habit(
        name=name,
        identity=identity,
        selected_days=days,
        experiments=experiments,
        experiment_history=history,
        sort_order=_parse_sort_order(sort_raw),
    )
    created = parse_timestamp(created_raw)
    if created is not None:
        habit.created_date = created
    else:
        logger.warning("Unreadable created date %r for habit %r; keeping default", created_raw, name)

    completions: List[Completion] = []
    seen_days = set()
    for raw in _split_list(completions_raw):
        stamp = parse_timestamp(raw)
        if stamp is None:
            logger.warning("Dropping unreadable completion %r for habit %r", raw, name)
            continue
        if as_day(stamp) in seen_days:
            continue
        seen_days.add(as_day(stamp))
        completions.append(Completion(habit.id, stamp))
    return habit, completions


def _parse_retrospective_row(row: List[str]) -> Optional[WeeklyRetrospective]:
    if len(row) < 2:
        return None
    start = parse_timestamp(row[0])
    if start is None:
        return None
    return WeeklyRetrospective(week_start=start.date(), notes=row[1])


def _looks_like_header(row: List[str]) -> bool:
    return bool(row) and row[0].strip().lower() == "name" and parse_timestamp(row[2] if len(row) > 2 else "") is None


def parse_backup(text: str) -> BackupData:
    """
    Parse backup text. Malformed rows are skipped and counted, never fatal.
    Retrospectives for the same week collapse to the last one in the file.
    """
    data = BackupData()
    retros: Dict = {}
    in_retros = False

    for row_no, row in enumerate(csv.reader(io.StringIO(text))):
        if not row or all(not cell.strip() for cell in row):
            continue
        if len(row) == 1 and row[0].strip() == RETRO_SENTINEL:
            in_retros = True
            continue

        if in_retros:
            retro = _parse_retrospective_row(row)
            if retro is None:
                data.skipped_rows += 1
                logger.warning("Skipping malformed retrospective row %d", row_no + 1)
                continue
            retros[retro.week_start] = retro
            continue

        if row_no == 0 and _looks_like_header(row):
            continue
        parsed = _parse_habit_row(row)
        if parsed is None:
            data.skipped_rows += 1
            logger.warning("Skipping habit row %d with %d column(s)", row_no + 1, len(row))
            continue
        habit, completions = parsed
        data.habits.append(habit)
        data.completions[habit.id] = completions

    data.retrospectives = sorted(retros.values(), key=lambda r: r.week_start)
    return data
