# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklife.cli.bootstrap import create_initial_state
from tasklife.core.state import AppState
from tasklife.tasks.category_store import CategoryStore
from tasklife.tasks.lifecycle import LifecycleEngine
from tasklife.tasks.reminders import ReminderCoordinator
from tasklife.tasks.search_index import KeywordIndex
from tasklife.tasks.task_db import TaskDB
from tasklife.tasks.task_models import DEFAULT_RETENTION_SECONDS
from tasklife.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeNotifier, FakeScheduler

# 2024-01-08T00:00:00Z
NOW = datetime(2024, 1, 8, tzinfo=timezone.utc).timestamp()


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasklife-test",
        log_level="INFO",
        console_enabled=False,
        badge_enabled=True,
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        db_path=tmp_path / "tasklife.sqlite3",
        retention_days=7,
        maintenance_interval_seconds=300.0,
        # synchronous writes keep on-disk assertions deterministic
        write_behind=False,
    )


@pytest.fixture()
def db(settings: SimpleNamespace) -> TaskDB:
    return TaskDB(settings.db_path)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def categories(db: TaskDB) -> CategoryStore:
    store = CategoryStore(db)
    store.load_all()
    return store


@pytest.fixture()
def store(db: TaskDB, categories: CategoryStore) -> TaskStore:
    s = TaskStore(db, index=KeywordIndex(), category_name=categories.display_name)
    s.load()
    return s


@pytest.fixture()
def engine(
    store: TaskStore,
    categories: CategoryStore,
    scheduler: FakeScheduler,
    notifier: FakeNotifier,
    clock: FakeClock,
) -> LifecycleEngine:
    """
    LifecycleEngine wired with deterministic fakes.

    NOTE: We keep the real SQLite-backed stores here because their
    correctness is part of what we want to test.
    """
    return LifecycleEngine(
        store,
        ReminderCoordinator(scheduler, notifier),
        categories=categories,
        notifier=notifier,
        retention_seconds=DEFAULT_RETENTION_SECONDS,
        clock=clock,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, scheduler: FakeScheduler, notifier: FakeNotifier) -> AppState:
    return create_initial_state(settings=settings, scheduler=scheduler, notifier=notifier)
