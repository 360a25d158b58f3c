# tests/test_category_store.py

from __future__ import annotations

import pytest

from tasklife.cli.bootstrap import create_initial_state
from tasklife.tasks.category_store import CategoryStore, migrate_legacy_builtins
from tasklife.tasks.task_db import TaskDB
from tasklife.tasks.task_models import BUILTIN_CATEGORIES, BUILTIN_BY_NAME, Category, Task

from .fakes import FakeNotifier, FakeScheduler

WORK_ID = BUILTIN_BY_NAME["work"].fixed_id


def test_empty_store_yields_builtins(db: TaskDB) -> None:
    store = CategoryStore(db)
    loaded = store.load_all()

    assert [c.name for c in loaded] == [b.name for b in BUILTIN_CATEGORIES]
    assert all(not c.is_custom for c in loaded)
    assert store.needs_save is True
    assert store.load_errors == []


def test_builtin_ids_survive_round_trip(db: TaskDB) -> None:
    first = CategoryStore(db)
    first.load_all()
    first.save()

    second = CategoryStore(db)
    loaded = second.load_all()
    assert {c.name: c.id for c in loaded} == {b.name: b.fixed_id for b in BUILTIN_CATEGORIES}
    assert second.needs_save is False


def test_custom_category_round_trip(db: TaskDB) -> None:
    store = CategoryStore(db)
    store.load_all()
    garden = store.create("Garden", "green")

    reloaded = CategoryStore(db)
    reloaded.load_all()
    got = reloaded.get(garden.id)
    assert got == Category(id=garden.id, name="Garden", color_key="green", is_custom=True)


def test_legacy_builtin_migration_is_idempotent(db: TaskDB) -> None:
    db.save_categories([Category(id="legacy-work", name="work", color_key="blue", is_custom=False)])
    store = CategoryStore(db)
    store.load_all()
    assert [c.id for c in store.legacy_records] == ["legacy-work"]
    assert store.get("legacy-work") is None

    tasks = [
        Task(id="t1", title="Prepare slides", category_id="legacy-work"),
        Task(id="t2", title="Something else", category_id=None),
    ]
    first = store.migrate_legacy_builtins(tasks)
    assert first.changed_task_ids == ["t1"]
    assert first.tasks[0].category_id == WORK_ID
    assert first.tasks[1] is tasks[1]

    second = migrate_legacy_builtins(first.tasks, store.legacy_records)
    assert second.changed is False
    assert second.tasks == first.tasks


def test_builtin_id_collision_is_dropped(db: TaskDB) -> None:
    db.save_categories([Category(id=WORK_ID, name="Errands", color_key="red", is_custom=True)])
    store = CategoryStore(db)
    store.load_all()

    work = store.get(WORK_ID)
    assert work is not None and work.name == "Work"
    assert store.find_by_name("Errands") is None
    assert any("collides" in e for e in store.load_errors)
    assert store.needs_save is True


def test_custom_row_on_builtin_id_is_reported_even_with_same_name(db: TaskDB) -> None:
    db.save_categories([Category(id=WORK_ID, name="Work", color_key="pink", is_custom=True)])
    store = CategoryStore(db)
    store.load_all()

    work = store.get(WORK_ID)
    assert work is not None
    assert work.is_custom is False
    assert work.color_key == "blue"
    assert any("collides" in e for e in store.load_errors)
    assert store.needs_save is True


def test_unknown_non_custom_row_is_dropped(db: TaskDB) -> None:
    db.save_categories([Category(id="mystery", name="Hobbies", color_key="teal", is_custom=False)])
    store = CategoryStore(db)
    store.load_all()
    assert store.get("mystery") is None
    assert store.load_errors


def test_builtins_cannot_be_edited_or_deleted(categories: CategoryStore) -> None:
    with pytest.raises(ValueError):
        categories.delete(WORK_ID)
    with pytest.raises(ValueError):
        categories.update(WORK_ID, name="Job")
    with pytest.raises(KeyError):
        categories.delete("no-such-id")


def test_custom_names_are_validated(categories: CategoryStore) -> None:
    with pytest.raises(ValueError):
        categories.create("work")
    with pytest.raises(ValueError):
        categories.create("   ")

    categories.create("Garden")
    with pytest.raises(ValueError):
        categories.create("garden")


def test_update_custom_category(categories: CategoryStore) -> None:
    garden = categories.create("Garden")
    updated = categories.update(garden.id, name="Backyard", color_key="teal")
    assert updated.id == garden.id
    assert categories.find_by_name("backyard") == updated


def test_suggest_category_from_title(categories: CategoryStore) -> None:
    assert categories.suggest_category("Buy milk").name == "Shopping"
    assert categories.suggest_category("Flight to Rome").name == "Travel"
    assert categories.suggest_category("Dentist appointment").name == "Health"
    assert categories.suggest_category("zzz") is None


def test_task_counts_per_category(categories: CategoryStore) -> None:
    tasks = [
        Task(id="1", title="a", category_id=WORK_ID),
        Task(id="2", title="b", category_id=WORK_ID, is_completed=True, completed_at=1.0),
        Task(id="3", title="c"),
    ]
    assert categories.task_count(WORK_ID, tasks) == 2
    assert categories.completed_task_count(WORK_ID, tasks) == 1
    assert categories.task_count(None, tasks) == 1


def test_bootstrap_rewrites_legacy_references_on_disk(settings) -> None:
    db = TaskDB(settings.db_path)
    db.save_categories([Category(id="legacy-work", name="Work", color_key="blue", is_custom=False)])
    db.upsert_task(Task(id="t1", title="Quarterly review", category_id="legacy-work"))

    state = create_initial_state(settings=settings, scheduler=FakeScheduler(), notifier=FakeNotifier())
    assert state.store.get("t1").category_id == WORK_ID

    tasks, _ = TaskDB(settings.db_path).load_tasks()
    assert tasks[0].category_id == WORK_ID
    rows, _ = TaskDB(settings.db_path).load_categories()
    assert "legacy-work" not in {c.id for c in rows}
