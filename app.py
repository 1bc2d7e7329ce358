"""Command line front end for the Identity Builder habit tracker."""

import argparse
import json
import logging
import os
import sys
from datetime import date, datetime

from backup_csv import backup_filename
from coach_prompt import build_prompt, fetch_experiment_examples
from config import load_settings
from habit_colors import HabitColorMap
from logging_setup import setup_logger
from microservice_clients import gather_microservice_snapshot
from models import LIST_SEPARATOR, SEPARATOR_MESSAGE, WEEK, is_scheduled, week_start
from rates import habit_stats, today_percentage, week_dates, week_stats
from repo_json import JSONRepo
from sample_data import load_sample_data, seed_default_habits
from streaks import best_streak, current_streak
from trends import PERIOD_KINDS, trend_series
from widget_snapshot import SharedStore, build_widget_data, publish_in_background

logger = logging.getLogger("app")


class CommandError(Exception):
    """Bad user input; reported on stderr with exit status 1."""


def parse_date_arg(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {raw!r}, expected YYYY-MM-DD")


def parse_days_arg(raw: str):
    """'Mon,Wed,Fri' -> {1, 3, 5}"""
    lookup = {name.lower(): index for index, name in enumerate(WEEK)}
    days = set()
    for part in raw.split(","):
        part = part.strip().lower()[:3]
        if not part:
            continue
        if part not in lookup:
            raise argparse.ArgumentTypeError(f"unknown weekday {part!r}, use Sun..Sat")
        days.add(lookup[part])
    if not days:
        raise argparse.ArgumentTypeError("pick at least one day of the week")
    return days


def _require_habit(repo, key):
    habit = repo.find_habit(key)
    if habit is None:
        raise CommandError(f"No habit matches {key!r}.")
    return habit


def _check(error):
    if error:
        raise CommandError(error)


# ---------- Commands ----------
def cmd_init(repo, args, settings):
    created = seed_default_habits(repo)
    if not created:
        print("Store already has habits; nothing to do.")
        return 0
    for habit in created:
        print(f"Added {habit.identity}: {habit.name}")
    return 0


def cmd_sample(repo, args, settings):
    if not args.yes:
        raise CommandError("Loading sample data replaces every habit. Re-run with --yes.")
    _check(load_sample_data(repo, today=args.date))
    print(f"Loaded {len(repo.list_habits())} sample habits.")
    return 0


def cmd_list(repo, args, settings):
    day = args.date or date.today()
    colors = HabitColorMap()
    habits = repo.list_habits()
    shown = habits if args.all else [h for h in habits if is_scheduled(h, day)]
    if not shown:
        print("No habits scheduled." if habits else "No habits yet. Try `init` or `add`.")
        return 0
    for habit in shown:
        index = repo.completion_index(habit.id)
        mark = "x" if index.is_completed(day) else " "
        days = ",".join(WEEK[d] for d in sorted(habit.selected_days))
        print(f"[{mark}] {habit.id[:8]}  {habit.identity:<14} {habit.name}  "
              f"({days}; streak {habit.streak}; {colors.color_for(habit, habits)})")
    print(f"Today: {today_percentage(repo.tracked_habits(), day)}% done")
    return 0


def cmd_add(repo, args, settings):
    habit, error = repo.add_habit(args.name, args.identity, args.days, args.experiment)
    _check(error)
    print(f"Added {habit.identity}: {habit.name} ({habit.id[:8]})")
    return 0


def cmd_done(repo, args, settings):
    habit = _require_habit(repo, args.habit)
    when = datetime.combine(args.date, datetime.now().time()) if args.date else None
    completed, error = repo.toggle_completion(habit.id, when)
    _check(error)
    state = "done" if completed else "not done"
    print(f"{habit.identity}: marked {state} for {(args.date or date.today()).isoformat()}")
    return 0


def cmd_edit(repo, args, settings):
    habit = _require_habit(repo, args.habit)
    if args.name is None and args.identity is None and args.days is None:
        raise CommandError("Nothing to change. Use --name, --identity or --days.")
    if args.name is not None:
        if not args.name.strip():
            raise CommandError("A habit needs a name.")
        habit.name = args.name.strip()
    if args.identity is not None:
        if not args.identity.strip():
            raise CommandError("A habit needs an identity.")
        habit.identity = args.identity.strip()
    if args.days is not None:
        habit.selected_days = set(args.days)
    saved, error = repo.save_habit(habit)
    _check(error)
    days = ",".join(WEEK[d] for d in sorted(saved.selected_days))
    print(f"Updated {saved.identity}: {saved.name} ({days})")
    return 0


def cmd_delete(repo, args, settings):
    habit = _require_habit(repo, args.habit)
    if not args.yes:
        raise CommandError(f"Deleting {habit.identity} also deletes its completions. Re-run with --yes.")
    _check(repo.delete_habit(habit.id))
    print(f"Deleted {habit.identity}: {habit.name}")
    return 0


def cmd_experiment(repo, args, settings):
    habit = _require_habit(repo, args.habit)
    for text in args.add:
        if LIST_SEPARATOR in text:
            raise CommandError(SEPARATOR_MESSAGE)
        if not habit.add_experiment(text):
            raise CommandError(f"{text.strip()!r} is blank or already active.")
    for text in args.remove:
        if not habit.remove_experiment(text.strip()):
            raise CommandError(f"{text.strip()!r} is not an active experiment.")
    if args.add or args.remove:
        _, error = repo.save_habit(habit)
        _check(error)
    print(f"{habit.identity} experiments:")
    for text in habit.experiments or ["(none)"]:
        print(f"  * {text}")
    if habit.past_experiments:
        print("Tried before:")
        for text in habit.past_experiments:
            print(f"  - {text}")
    return 0


def cmd_reorder(repo, args, settings):
    """Listed habits move to the top in the given order; the rest follow."""
    chosen = []
    for key in args.habits:
        habit = _require_habit(repo, key)
        if habit.id in chosen:
            raise CommandError(f"{habit.identity} is listed twice.")
        chosen.append(habit.id)
    rest = [h.id for h in repo.list_habits() if h.id not in chosen]
    _check(repo.reorder(chosen + rest))
    for position, habit in enumerate(repo.list_habits(), start=1):
        print(f"{position}. {habit.identity}: {habit.name}")
    return 0


def _print_trend(habit, index, period, today):
    series = trend_series(habit, index, period, today=today)
    print(f"  {series.title} (average {series.average}%)")
    for (label, value), smooth in zip(series.rows(), series.moving_average):
        print(f"    {label:<10} {value:>5}  avg {smooth:.0f}%")


def cmd_stats(repo, args, settings):
    today = args.date or date.today()
    habits = [_require_habit(repo, args.habit)] if args.habit else repo.list_habits()
    for habit in habits:
        index = repo.completion_index(habit.id)
        stats = habit_stats(habit, index, today=today)
        print(f"{habit.identity} - {habit.name}")
        print(f"  Completion rate: {stats.actual_rate}% "
              f"({stats.completed} done, {stats.not_completed} missed, potential {stats.potential_rate}%)")
        print(f"  Streak: {current_streak(habit, index, as_of=today)} days "
              f"| Best: {best_streak(habit, index, today=today)} days")
        if args.trend:
            _print_trend(habit, index, args.period, today)
    return 0


def cmd_week(repo, args, settings):
    day = args.date or date.today()
    dates = week_dates(day)
    tracked = repo.tracked_habits()
    print("Week of " + dates[0].isoformat())
    print(" " * 16 + " ".join(WEEK[(d.weekday() + 1) % 7] for d in dates))
    for habit, index in tracked:
        cells = []
        for d in dates:
            if not is_scheduled(habit, d):
                cells.append("-")
            else:
                cells.append("x" if index.is_completed(d) else ".")
        print(f"{habit.identity[:15]:<16}" + " ".join(c.center(3) for c in cells))
    stats = week_stats(tracked, day, today=day)
    print(f"Actual {stats.actual_rate}% | Potential {stats.potential_rate}%")
    return 0


def cmd_retro(repo, args, settings):
    day = args.date or date.today()
    if args.notes is not None:
        retro, error = repo.save_retrospective(day, args.notes)
        _check(error)
        print(f"Saved retrospective for week of {retro.week_start.isoformat()}")
        return 0
    retro = repo.retrospective_for(day)
    if retro is None:
        print(f"No retrospective for week of {week_start(day).isoformat()}")
    else:
        print(f"Week of {retro.week_start.isoformat()}:\n{retro.notes}")
    return 0


def cmd_export(repo, args, settings):
    path = args.output or os.path.join(settings.export_dir, backup_filename())
    folder = os.path.dirname(path)
    try:
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(repo.export_csv())
    except OSError as exc:
        logger.error("Export to %s failed: %s", path, exc)
        raise CommandError(f"Could not write {path}: {exc}")
    logger.info("Exported backup to %s", path)
    print(f"Exported backup to {path}")
    return 0


def cmd_import(repo, args, settings):
    if not args.yes:
        raise CommandError("Importing replaces every habit, completion and retrospective "
                           "and cannot be undone. Re-run with --yes.")
    try:
        with open(args.path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise CommandError(f"Could not read {args.path}: {exc}")
    backup, error = repo.import_csv(text)
    _check(error)
    print(f"Imported {len(backup.habits)} habits and {len(backup.retrospectives)} retrospectives"
          + (f" ({backup.skipped_rows} rows skipped)" if backup.skipped_rows else ""))
    return 0


def cmd_widget(repo, args, settings):
    data = build_widget_data(repo.tracked_habits(), today=args.date)
    worker = publish_in_background(SharedStore(settings.shared_store_path), data)
    worker.join(timeout=5)
    print(json.dumps(data.to_dict(), indent=2))
    return 0


def cmd_prompt(repo, args, settings):
    habit = _require_habit(repo, args.habit)
    examples = None
    if not args.no_examples:
        examples = fetch_experiment_examples(settings.examples_url, timeout=settings.http_timeout)
    print(build_prompt(habit, repo.completion_index(habit.id), repo.list_retrospectives(), examples))
    return 0


def cmd_report(repo, args, settings):
    snapshot = gather_microservice_snapshot(repo, today=args.date, ports=settings.ports)
    rates = snapshot["rates"]
    if rates["error"]:
        print(f"Completion rates unavailable: {rates['error']}")
    else:
        pooled = rates["response"]["pooled"]
        print(f"This week: actual {pooled['actual_rate']}% | potential {pooled['potential_rate']}% "
              f"| today {rates['response']['today_percentage']}%")
    for streak, trend in zip(snapshot["streaks"]["entries"], snapshot["trend"]["entries"]):
        habit = streak["habit"]
        if streak["error"]:
            line = f"streaks unavailable: {streak['error']}"
        else:
            line = (f"streak {streak['result']['current_streak']} "
                    f"(best {streak['result']['best_streak']})")
        if trend["response"]:
            line += f", {trend['response']['title']} average {trend['response']['average']}%"
        print(f"{habit.identity}: {line}")
    return 0


COMMANDS = {
    "init": cmd_init,
    "sample": cmd_sample,
    "list": cmd_list,
    "add": cmd_add,
    "done": cmd_done,
    "edit": cmd_edit,
    "delete": cmd_delete,
    "experiment": cmd_experiment,
    "reorder": cmd_reorder,
    "stats": cmd_stats,
    "week": cmd_week,
    "retro": cmd_retro,
    "export": cmd_export,
    "import": cmd_import,
    "widget": cmd_widget,
    "prompt": cmd_prompt,
    "report": cmd_report,
}


def build_parser():
    parser = argparse.ArgumentParser(prog="identity-builder",
                                     description="Track habits that build the person you want to be.")
    parser.add_argument("--data", help="habit store path (default: $HABITS_DATA_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create the starter habits in an empty store")

    p = sub.add_parser("sample", help="replace everything with 90 days of demo data")
    p.add_argument("--yes", action="store_true")
    p.add_argument("--date", type=parse_date_arg)

    p = sub.add_parser("list", help="habits scheduled for a day")
    p.add_argument("--date", type=parse_date_arg)
    p.add_argument("--all", action="store_true", help="include unscheduled habits")

    p = sub.add_parser("add", help="add a habit")
    p.add_argument("name")
    p.add_argument("identity")
    p.add_argument("--days", type=parse_days_arg, help="e.g. Mon,Wed,Fri (default: every day)")
    p.add_argument("--experiment", action="append", default=[])

    p = sub.add_parser("done", help="toggle a habit for a day")
    p.add_argument("habit", help="id, id prefix, identity or name")
    p.add_argument("--date", type=parse_date_arg)

    p = sub.add_parser("edit", help="rename or reschedule a habit")
    p.add_argument("habit")
    p.add_argument("--name")
    p.add_argument("--identity")
    p.add_argument("--days", type=parse_days_arg)

    p = sub.add_parser("delete", help="delete a habit and its completions")
    p.add_argument("habit")
    p.add_argument("--yes", action="store_true")

    p = sub.add_parser("experiment", help="show, add or retire a habit's experiments")
    p.add_argument("habit")
    p.add_argument("--add", action="append", default=[])
    p.add_argument("--remove", action="append", default=[])

    p = sub.add_parser("reorder", help="move habits to the top of the list in this order")
    p.add_argument("habits", nargs="+")

    p = sub.add_parser("stats", help="rates and streaks per habit")
    p.add_argument("habit", nargs="?")
    p.add_argument("--date", type=parse_date_arg)
    p.add_argument("--trend", action="store_true")
    p.add_argument("--period", choices=PERIOD_KINDS, default="week")

    p = sub.add_parser("week", help="Monday-to-Sunday grid with actual and potential rates")
    p.add_argument("--date", type=parse_date_arg)

    p = sub.add_parser("retro", help="show or save the weekly retrospective")
    p.add_argument("--date", type=parse_date_arg)
    p.add_argument("--notes")

    p = sub.add_parser("export", help="write a CSV backup")
    p.add_argument("--output")

    p = sub.add_parser("import", help="replace everything with a CSV backup")
    p.add_argument("path")
    p.add_argument("--yes", action="store_true")

    p = sub.add_parser("widget", help="publish the widget snapshot")
    p.add_argument("--date", type=parse_date_arg)

    p = sub.add_parser("prompt", help="coaching prompt for an AI assistant")
    p.add_argument("habit")
    p.add_argument("--no-examples", action="store_true")

    p = sub.add_parser("report", help="analytics from the running microservices")
    p.add_argument("--date", type=parse_date_arg)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logger(settings.log_file, settings.log_level)
    repo = JSONRepo(args.data or settings.data_path)
    try:
        return COMMANDS[args.command](repo, args, settings)
    except CommandError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
