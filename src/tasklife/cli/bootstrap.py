# src/tasklife/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires stores, reminder backend, search index and lifecycle engine into AppState,
- runs load-time migrations in order (category identities first, then the
  cold-start maintenance tick that fills completion timestamps and evicts).
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import get_settings
from ..connectors.notifier import ConsoleNotifier
from ..core.ports import Notifier, ReminderScheduler
from ..core.state import AppState
from ..tasks.category_store import CategoryStore
from ..tasks.lifecycle import LifecycleEngine
from ..tasks.maintenance import MaintenanceRunner
from ..tasks.reminders import AsyncioReminderScheduler, ReminderCoordinator
from ..tasks.search_index import KeywordIndex
from ..tasks.task_db import TaskDB
from ..tasks.task_models import DEFAULT_RETENTION_SECONDS
from ..tasks.task_store import TaskStore
from ..tasks.writer import PersistenceWriter

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def _retention_seconds(settings: Any) -> float:
    days = getattr(settings, "retention_days", None)
    if days is None:
        return DEFAULT_RETENTION_SECONDS
    return max(1, int(days)) * 86400.0


def create_initial_state(
    *,
    settings=None,
    scheduler: ReminderScheduler | None = None,
    notifier: Notifier | None = None,
    run_maintenance: bool = True,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and collaborators injectable makes the app easier to test
    and avoids hidden global state. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    db = TaskDB(settings.db_path)
    writer = PersistenceWriter() if getattr(settings, "write_behind", False) else None
    index = KeywordIndex()

    categories = CategoryStore(db, writer=writer)
    categories.load_all()

    store = TaskStore(db, writer=writer, index=index, category_name=categories.display_name)
    store.load()

    # Task -> category references must be valid before any task-level derived state runs.
    migrated = categories.migrate_legacy_builtins(store.snapshot())
    if migrated.changed:
        store.replace_all(migrated.tasks)
    if categories.needs_save:
        categories.save()

    if scheduler is None:
        scheduler = AsyncioReminderScheduler()
    if notifier is None:
        notifier = ConsoleNotifier()

    engine = LifecycleEngine(
        store,
        ReminderCoordinator(scheduler, notifier),
        categories=categories,
        notifier=notifier,
        retention_seconds=_retention_seconds(settings),
        badge_enabled=bool(getattr(settings, "badge_enabled", True)),
    )
    if isinstance(scheduler, AsyncioReminderScheduler):
        scheduler.set_fire_callback(engine.on_reminder_fired)

    maintenance = MaintenanceRunner(engine)

    load_errors = list(dict.fromkeys([*categories.load_errors, *store.load_errors]))
    for err in load_errors:
        logger.warning("Load problem: %s", err)

    state = AppState(
        settings=settings,
        db=db,
        categories=categories,
        store=store,
        index=index,
        scheduler=scheduler,
        engine=engine,
        maintenance=maintenance,
        writer=writer,
        load_errors=load_errors,
    )

    store.reindex_all()
    if run_maintenance:
        # cold start counts as a maintenance trigger
        maintenance.on_maintenance_tick()
    armed = engine.resync_reminders()

    logger.info(
        "State ready tasks=%d categories=%d reminders=%d",
        store.count(),
        len(categories.categories),
        armed,
    )
    return state


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown: drain pending writes (no exceptions should escape)."""
    writer = state.writer
    if writer is None:
        return
    try:
        writer.shutdown()
    except Exception:
        logger.exception("Failed to drain pending writes.")
