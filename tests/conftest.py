from datetime import date, datetime, time

import pytest

from completions import CompletionIndex
from models import Completion, Habit
from repo_json import JSONRepo


def make_habit(days=None, created=date(2024, 1, 1), **kwargs):
    kwargs.setdefault("name", "Read 10 pages")
    kwargs.setdefault("identity", "Reader")
    if days is not None:
        kwargs["selected_days"] = set(days)
    return Habit(created_date=datetime.combine(created, time(9, 0)), **kwargs)


def done_on(habit, *days, at=time(20, 0)):
    return [Completion(habit.id, datetime.combine(d, at)) for d in days]


def index_for(habit, *days):
    return CompletionIndex(done_on(habit, *days))


@pytest.fixture
def repo(tmp_path):
    return JSONRepo(str(tmp_path / "data" / "habits.json"))


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("HABITS_LOG_FILE", str(tmp_path / "logs" / "habits.log"))
    monkeypatch.setenv("HABITS_DATA_PATH", str(tmp_path / "data" / "habits.json"))
    monkeypatch.setenv("HABITS_SHARED_STORE", str(tmp_path / "data" / "shared.json"))
    monkeypatch.setenv("HABITS_EXPORT_DIR", str(tmp_path / "exports"))
