from datetime import date, datetime

from backup_csv import (
    RETRO_SENTINEL,
    backup_filename,
    export_backup,
    format_timestamp,
    parse_backup,
    parse_timestamp,
)
from conftest import done_on, make_habit
from models import ALL_DAYS, WeeklyRetrospective


def test_export_layout():
    habit = make_habit(days={5, 1, 3}, name="Read", identity="Reader",
                       experiments=["a", "b"], sort_order=2)
    retro = WeeklyRetrospective(week_start=date(2024, 1, 3), notes="Good week")
    text = export_backup([habit], {habit.id: done_on(habit, date(2024, 1, 1))}, [retro])
    assert text.splitlines() == [
        '"Read","Reader",2024-01-01T09:00:00.000,"1,3,5",2024-01-01T20:00:00.000,"a|b","a|b",2',
        RETRO_SENTINEL,
        '2024-01-01T00:00:00.000,"Good week"',
    ]
    assert text.endswith("\n")


def test_export_orders_by_rank_then_creation():
    second = make_habit(name="second", sort_order=2)
    first = make_habit(name="first", sort_order=1, created=date(2024, 2, 1))
    text = export_backup([second, first], {})
    assert text.splitlines()[0].startswith('"first"')
    assert text.splitlines()[2] == RETRO_SENTINEL


def test_round_trip_keeps_everything_that_matters():
    habit = make_habit(
        days={0, 6},
        name='Say "thanks", twice',
        identity="Grateful, kind",
        experiments=["Sticky note"],
        experiment_history=["Journal", "Sticky note"],
        sort_order=4,
    )
    other = make_habit(name="Walk", identity="Mover", sort_order=5)
    completions = {
        habit.id: done_on(habit, date(2024, 1, 6), date(2024, 1, 7)),
        other.id: [],
    }
    retros = [WeeklyRetrospective(week_start=date(2024, 1, 1), notes='Busy, "tired"\nbut fine')]

    backup = parse_backup(export_backup([habit, other], completions, retros))

    assert backup.skipped_rows == 0
    assert len(backup.habits) == 2
    again = backup.habits[0]
    assert again.name == habit.name
    assert again.identity == habit.identity
    assert again.selected_days == habit.selected_days
    assert again.experiments == habit.experiments
    assert again.experiment_history == habit.experiment_history
    assert again.sort_order == 4
    assert again.created_date == habit.created_date
    assert {c.date.date() for c in backup.completions[again.id]} == {date(2024, 1, 6), date(2024, 1, 7)}
    assert all(c.habit_id == again.id for c in backup.completions[again.id])
    assert backup.completions[backup.habits[1].id] == []
    assert backup.retrospectives[0].notes == 'Busy, "tired"\nbut fine'
    assert backup.retrospectives[0].week_start == date(2024, 1, 1)


def test_legacy_six_column_row():
    text = (
        '"Run","Athlete",2023-05-01T07:00:00,12,'
        '2023-05-01T07:30:00.000Z|2023-05-02T07:30:00Z,"Shoes out|Morning"\n'
    )
    backup = parse_backup(text)
    habit = backup.habits[0]
    assert habit.selected_days == set(ALL_DAYS)
    assert habit.experiments == ["Shoes out", "Morning"]
    assert habit.experiment_history == habit.experiments
    assert habit.sort_order == 0
    assert habit.created_date == datetime(2023, 5, 1, 7, 0)
    assert [c.date for c in backup.completions[habit.id]] == [
        datetime(2023, 5, 1, 7, 30), datetime(2023, 5, 2, 7, 30)
    ]
    assert backup.retrospectives == []


def test_seven_column_row_defaults_sort_order():
    text = '"Run","Athlete",2023-05-01T07:00:00.000,"","","x","old|x"\n'
    habit = parse_backup(text).habits[0]
    assert habit.sort_order == 0
    assert habit.selected_days == set(ALL_DAYS)
    assert habit.experiments == ["x"]
    assert habit.experiment_history == ["old", "x"]


def test_bad_rows_are_skipped_not_fatal():
    before = datetime.now()
    text = "\n".join([
        '"too","short",2024-01-01',
        '"Meditate","Calm",not-a-date,"1,2",2024-01-01T07:00:00.000|garbage|2024-01-01T21:00:00.000,"",""',
        RETRO_SENTINEL,
        "whenever,\"notes\"",
        '2024-01-08T00:00:00.000,"first"',
        '2024-01-10T00:00:00.000,"second"',
    ])
    backup = parse_backup(text)
    assert backup.skipped_rows == 2
    habit = backup.habits[0]
    assert habit.created_date >= before
    # bad stamp dropped, same-day duplicate collapsed
    assert [c.date for c in backup.completions[habit.id]] == [datetime(2024, 1, 1, 7, 0)]
    assert len(backup.retrospectives) == 1
    assert backup.retrospectives[0].notes == "second"


def test_header_row_is_ignored():
    text = 'name,identity,created,days,completions,experiments,history,sort_order\n' \
           '"Run","Athlete",2023-05-01T07:00:00.000,"1","","","",1\n'
    backup = parse_backup(text)
    assert [h.name for h in backup.habits] == ["Run"]
    assert backup.skipped_rows == 0


def test_timestamp_formats():
    assert parse_timestamp("2024-01-01T08:30:00.250") == datetime(2024, 1, 1, 8, 30, 0, 250000)
    assert parse_timestamp("2024-01-01T08:30:00Z") == datetime(2024, 1, 1, 8, 30)
    assert parse_timestamp("2024-01-01") == datetime(2024, 1, 1)
    assert parse_timestamp("garbage") is None
    assert format_timestamp(datetime(2024, 1, 1, 8, 30, 0, 250999)) == "2024-01-01T08:30:00.250"


def test_backup_filename_uses_epoch_seconds():
    assert backup_filename(datetime.fromtimestamp(1700000000)) == "habits_backup_1700000000.csv"


def test_stored_experiments_survive_a_round_trip(repo):
    habit, _ = repo.add_habit("Read", "Reader", experiments=["Read, then journal", 'Say "done"'])
    assert not habit.add_experiment("Tea|Book")
    assert habit.add_experiment("Tea and a book")
    habit.remove_experiment("Read, then journal")
    repo.save_habit(habit)

    again = parse_backup(repo.export_csv()).habits[0]
    stored = repo.get_habit(habit.id)
    assert again.experiments == stored.experiments == ['Say "done"', "Tea and a book"]
    assert again.experiment_history == stored.experiment_history
