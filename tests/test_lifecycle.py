# tests/test_lifecycle.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tasklife.tasks.lifecycle import LifecycleEngine, migrate_completion_timestamps
from tasklife.tasks.reminders import REMINDER_TITLE, ReminderCoordinator
from tasklife.tasks.task_models import BADGE_CAP, DAY_SECONDS, DEFAULT_RETENTION_SECONDS, Task

from .conftest import NOW
from .fakes import FailingScheduler, FakeNotifier


def _utc(*args: int) -> float:
    return datetime(*args, tzinfo=timezone.utc).timestamp()


def test_completion_timestamp_follows_completed_flag(engine, clock) -> None:
    task = engine.create_task("Write report")
    assert task.completed_at is None

    done = engine.toggle_completion(task.id)
    assert done.is_completed is True
    assert done.completed_at == clock.now

    clock.advance(60)
    reopened = engine.toggle_completion(task.id)
    assert reopened.is_completed is False
    assert reopened.completed_at is None


def test_toggle_round_trip_leaves_exactly_one_reminder(engine, scheduler, clock) -> None:
    task = engine.create_task("Call mom", reminder_at=clock.now + 3600)
    assert list(scheduler.active) == [task.id]

    engine.toggle_completion(task.id)
    assert scheduler.active == {}

    engine.toggle_completion(task.id)
    assert list(scheduler.active) == [task.id]
    fire_at, payload = scheduler.active[task.id]
    assert fire_at == clock.now + 3600
    assert payload.title == REMINDER_TITLE
    assert payload.body == "Call mom"


def test_past_reminder_is_never_scheduled(engine, scheduler, clock) -> None:
    task = engine.create_task("Stale", reminder_at=clock.now - 60)
    assert task.has_reminder is True
    assert scheduler.active == {}

    engine.toggle_completion(task.id)
    engine.toggle_completion(task.id)
    assert scheduler.active == {}


def test_edit_reschedules_and_clears_reminder(engine, scheduler, clock) -> None:
    task = engine.create_task("Dentist")
    assert scheduler.active == {}

    engine.edit_task(task.id, reminder_at=clock.now + 120)
    assert scheduler.active[task.id][0] == clock.now + 120

    engine.edit_task(task.id, reminder_at=clock.now + 600)
    assert len(scheduler.active) == 1
    assert scheduler.active[task.id][0] == clock.now + 600

    edited = engine.edit_task(task.id, reminder_at=None)
    assert edited.has_reminder is False
    assert scheduler.active == {}


def test_delete_cancels_reminder(engine, scheduler, store, clock) -> None:
    task = engine.create_task("Pay rent", reminder_at=clock.now + 3600)
    engine.delete_task(task.id)
    assert store.get(task.id) is None
    assert scheduler.active == {}


def test_duplicate_copies_fields_with_new_id(engine, scheduler, clock) -> None:
    src = engine.create_task("Pack bags", description="passport", due_at=clock.now + DAY_SECONDS)
    copy = engine.duplicate_task(src.id)
    assert copy.id != src.id
    assert copy.title == "Pack bags (Copy)"
    assert copy.description == "passport"
    assert copy.due_at == src.due_at
    assert copy.is_completed is False


def test_eviction_boundary() -> None:
    now = _utc(2024, 1, 8)
    a = Task(id="a", title="A", is_completed=True, completed_at=_utc(2024, 1, 1))
    b = Task(id="b", title="B", is_completed=True, completed_at=_utc(2024, 1, 1, 0, 0, 1))
    c = Task(id="c", title="C", is_completed=True, completed_at=now - 7 * DAY_SECONDS - 1)
    d = Task(id="d", title="D", is_completed=True, completed_at=now - (7 * DAY_SECONDS - 60))

    assert a.is_evictable(now) is True
    assert b.is_evictable(now) is False
    assert c.is_evictable(now) is True
    assert d.is_evictable(now) is False


def test_cleanup_evicts_once_and_only_completed(engine, store, scheduler) -> None:
    store.insert(Task(id="old", title="Old", is_completed=True, completed_at=NOW - 8 * DAY_SECONDS))
    store.insert(Task(id="fresh", title="Fresh", is_completed=True, completed_at=NOW - DAY_SECONDS))
    store.insert(Task(id="open", title="Open", created_at=NOW - 30 * DAY_SECONDS))

    first = engine.cleanup_evictable(NOW)
    assert [t.id for t in first.evicted] == ["old"]
    assert ("cancel", "old") in scheduler.calls
    assert sorted(t.id for t in store.snapshot()) == ["fresh", "open"]

    second = engine.cleanup_evictable(NOW)
    assert second.evicted == []


def test_eviction_is_persisted(engine, store, db) -> None:
    store.insert(Task(id="old", title="Old", is_completed=True, completed_at=NOW - 8 * DAY_SECONDS))
    engine.cleanup_evictable(NOW)
    tasks, _ = db.load_tasks()
    assert tasks == []


def test_maintenance_migrates_before_evicting(engine, store) -> None:
    """Legacy completed records get a timestamp that never makes them evictable at once."""
    store.insert(
        Task(
            id="legacy",
            title="Legacy",
            is_completed=True,
            completed_at=None,
            created_at=NOW - 40 * DAY_SECONDS,
            updated_at=NOW - 30 * DAY_SECONDS,
        )
    )
    store.insert(
        Task(
            id="recent",
            title="Recent",
            is_completed=True,
            completed_at=None,
            created_at=NOW - 3 * DAY_SECONDS,
            updated_at=NOW - DAY_SECONDS,
        )
    )

    report = engine.perform_maintenance(NOW)

    assert sorted(t.id for t in report.migrated) == ["legacy", "recent"]
    assert report.evicted == []
    legacy = store.get("legacy")
    recent = store.get("recent")
    assert legacy is not None and legacy.completed_at == NOW
    assert recent is not None and recent.completed_at == NOW - DAY_SECONDS


def test_migration_rejects_future_timestamps() -> None:
    t = Task(id="x", title="X", is_completed=True, updated_at=NOW + DAY_SECONDS)
    (out,) = migrate_completion_timestamps([t], NOW)
    assert out.completed_at == NOW


def test_maintenance_is_quiet_when_nothing_to_do(engine, store) -> None:
    store.insert(Task(id="t", title="T", due_at=NOW + DAY_SECONDS))
    engine.perform_maintenance(NOW)

    report = engine.perform_maintenance(NOW)
    assert report.changed is False
    assert report.migrated == []
    assert report.evicted == []


def test_maintenance_reports_overdue_and_badge(engine, store, notifier) -> None:
    store.insert(Task(id="late", title="Late", due_at=NOW - 3600))
    store.insert(Task(id="later", title="Later", due_at=NOW + 30 * DAY_SECONDS))
    store.insert(Task(id="nodue", title="No due date"))
    store.insert(Task(id="done", title="Done", is_completed=True, completed_at=NOW, due_at=NOW - 3600))

    report = engine.perform_maintenance(NOW)

    assert [t.id for t in report.overdue] == ["late"]
    assert notifier.overdue == [["late"]]
    assert report.badge_count == 2


def test_badge_count_is_capped(store) -> None:
    for i in range(BADGE_CAP + 20):
        store.insert(Task(id=f"t{i}", title=f"Task {i}"))
    assert store.badge_count(NOW) == BADGE_CAP


def test_scheduler_failure_does_not_roll_back(store, categories, clock) -> None:
    notifier = FakeNotifier()
    engine = LifecycleEngine(
        store,
        ReminderCoordinator(FailingScheduler(), notifier),
        categories=categories,
        notifier=notifier,
        retention_seconds=DEFAULT_RETENTION_SECONDS,
        clock=clock,
    )

    task = engine.create_task("Water plants", reminder_at=clock.now + 3600)
    assert store.get(task.id) is not None
    assert notifier.failures == [task.id]

    done = engine.toggle_completion(task.id)
    assert done.is_completed is True
    assert store.get(task.id).completed_at == clock.now


def test_dangling_category_is_cleared_on_edit(engine, categories, store) -> None:
    garden = categories.create("Garden")
    task = engine.create_task("Plant tulips", category_id=garden.id)

    categories.delete(garden.id)
    assert store.get(task.id).category_id == garden.id
    assert categories.display_name(task.category_id) == "Uncategorized"

    edited = engine.edit_task(task.id, title="Plant tulips and roses")
    assert edited.category_id is None


def test_fired_reminder_for_completed_task_is_ignored(engine, notifier, clock) -> None:
    task = engine.create_task("Stretch", reminder_at=clock.now + 60)
    assert engine.on_reminder_fired(task.id) is not None
    assert [tid for tid, _ in notifier.fired] == [task.id]

    engine.toggle_completion(task.id)
    assert engine.on_reminder_fired(task.id) is None
    assert engine.on_reminder_fired("missing") is None
    assert len(notifier.fired) == 1


def test_completion_listener_hears_completions_only(engine) -> None:
    heard: list[str] = []
    engine.add_completion_listener(lambda t: heard.append(t.id))

    task = engine.create_task("Run 5k")
    engine.toggle_completion(task.id)
    engine.toggle_completion(task.id)
    assert heard == [task.id]


def test_resync_rearms_only_future_reminders(engine, store, scheduler) -> None:
    store.insert(Task(id="future", title="F", has_reminder=True, reminder_at=NOW + 60))
    store.insert(Task(id="past", title="P", has_reminder=True, reminder_at=NOW - 60))
    store.insert(Task(id="done", title="D", is_completed=True, completed_at=NOW, has_reminder=True, reminder_at=NOW + 60))

    assert engine.resync_reminders(NOW) == 1
    assert list(scheduler.active) == ["future"]


def test_maintenance_clears_leftover_completed_at_on_pending_task(engine, store, db) -> None:
    db.upsert_task(Task(id="x", title="Reopened elsewhere", is_completed=False, completed_at=1000.0))
    store.load()

    report = engine.perform_maintenance(NOW)

    task = store.get("x")
    assert task is not None
    assert task.is_completed is False
    assert task.completed_at is None
    assert [t.id for t in report.migrated] == ["x"]
    assert report.evicted == []

    tasks, _ = db.load_tasks()
    assert tasks[0].completed_at is None
    assert engine.perform_maintenance(NOW).migrated == []


def test_completion_repair_predicates() -> None:
    assert Task(id="a", title="A", is_completed=True).needs_completion_repair() is True
    assert Task(id="b", title="B", completed_at=5.0).needs_completion_repair() is True
    assert Task(id="c", title="C", is_completed=True, completed_at=5.0).needs_completion_repair() is False
    assert Task(id="d", title="D").needs_completion_repair() is False


def test_edit_with_unknown_category_raises(engine, store, categories) -> None:
    garden = categories.create("Garden")
    task = engine.create_task("Rake leaves", category_id=garden.id)

    with pytest.raises(KeyError):
        engine.edit_task(task.id, category_id="no-such-category")
    assert store.get(task.id).category_id == garden.id

    cleared = engine.edit_task(task.id, category_id=None)
    assert cleared.category_id is None


def test_days_until_due_counts_local_calendar_days() -> None:
    now = datetime(2024, 1, 8, 10, 0).timestamp()

    assert Task(id="n", title="N").days_until_due(now) is None
    assert Task(id="t", title="T", due_at=datetime(2024, 1, 8, 23, 59).timestamp()).days_until_due(now) == 0
    assert Task(id="m", title="M", due_at=datetime(2024, 1, 9, 0, 30).timestamp()).days_until_due(now) == 1
    assert Task(id="f", title="F", due_at=datetime(2024, 1, 11, 9, 0).timestamp()).days_until_due(now) == 3
    assert Task(id="p", title="P", due_at=datetime(2024, 1, 6, 18, 0).timestamp()).days_until_due(now) == -2
