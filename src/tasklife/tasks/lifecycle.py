# src/tasklife/tasks/lifecycle.py

from __future__ import annotations

"""
Task lifecycle engine.

States per task:
- pending    is_completed=False, completed_at=None
- completed  is_completed=True,  completed_at=<when>
- evicted    removed from the store (terminal, never stored)

Every transition is a single swap under the TaskStore lock; reminder
scheduling follows the swap and never rolls it back.
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace

from ..core.ports import Notifier, NullNotifier, ReminderPayload
from .category_store import CategoryStore
from .reminders import ReminderCoordinator, build_payload
from .task_models import DEFAULT_RETENTION_SECONDS, Task, new_id
from .task_store import TaskStore

logger = logging.getLogger(__name__)

CompletionListener = Callable[[Task], None]
Clock = Callable[[], float]

_UNSET: object = object()


@dataclass(slots=True, frozen=True)
class EvictionResult:
    kept: list[Task]
    evicted: list[Task]


@dataclass(slots=True)
class MaintenanceReport:
    migrated: list[Task] = field(default_factory=list)
    evicted: list[Task] = field(default_factory=list)
    overdue: list[Task] = field(default_factory=list)
    badge_count: int | None = None
    duration_ms: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.migrated or self.evicted)


def migrate_completion_timestamps(
    tasks: Iterable[Task],
    now_ts: float,
    retention_seconds: float = DEFAULT_RETENTION_SECONDS,
) -> list[Task]:
    """
    Make completed_at agree with is_completed.

    Pending tasks lose a leftover completed_at. Completed tasks written
    before completed_at existed get a timestamp: the last modification
    time (updated_at, else created_at) when known. A candidate in the
    future, or one old enough to make the task evictable right away, is
    replaced by now_ts: a migrated record always gets a full retention
    window.
    """
    out: list[Task] = []
    for task in tasks:
        if task.has_stale_completion_timestamp():
            out.append(replace(task, completed_at=None))
            continue
        if not task.needs_completion_timestamp():
            out.append(task)
            continue

        candidate = task.updated_at or task.created_at or None
        if candidate is None or candidate > now_ts or now_ts - candidate >= retention_seconds:
            candidate = now_ts
        out.append(replace(task, completed_at=float(candidate)))
    return out


def partition_evictable(
    tasks: Iterable[Task],
    now_ts: float,
    retention_seconds: float = DEFAULT_RETENTION_SECONDS,
) -> EvictionResult:
    kept: list[Task] = []
    evicted: list[Task] = []
    for t in tasks:
        (evicted if t.is_evictable(now_ts, retention_seconds) else kept).append(t)
    return EvictionResult(kept=kept, evicted=evicted)


def detect_overdue(tasks: Iterable[Task], now_ts: float) -> list[Task]:
    return [t for t in tasks if t.is_overdue(now_ts)]


class LifecycleEngine:
    """
    All task operations that touch reminders or derived lifecycle state.

    The engine is constructed once per application (composition root) and
    handed to whoever needs it; there is no module-level instance.
    """

    def __init__(
        self,
        store: TaskStore,
        reminders: ReminderCoordinator,
        *,
        categories: CategoryStore | None = None,
        notifier: Notifier | None = None,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        badge_enabled: bool = True,
        clock: Clock = time.time,
    ) -> None:
        self.store = store
        self.reminders = reminders
        self.categories = categories
        self._notifier: Notifier = notifier or NullNotifier()
        self.retention_seconds = float(retention_seconds)
        self.badge_enabled = badge_enabled
        self._clock = clock
        self._completion_listeners: list[CompletionListener] = []
        self._timestamps_migrated = False

    def now(self) -> float:
        return float(self._clock())

    def add_completion_listener(self, listener: CompletionListener) -> None:
        """Milestone/statistics consumers hear about every Pending->Completed transition."""
        self._completion_listeners.append(listener)

    # ---- user edits ----

    def create_task(
        self,
        title: str,
        *,
        description: str = "",
        due_at: float | None = None,
        reminder_at: float | None = None,
        category_id: str | None = None,
    ) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")

        now = self.now()
        task = Task(
            id=new_id(),
            title=title,
            description=(description or "").strip(),
            due_at=due_at,
            has_reminder=reminder_at is not None,
            reminder_at=reminder_at,
            category_id=category_id,
            created_at=now,
            updated_at=now,
        )
        self.store.insert(task)
        if task.wants_reminder(now):
            self.reminders.sync(task, now)
        logger.info("Task created id=%s reminder=%s", task.id, task.has_reminder)
        return task

    def edit_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        due_at: float | None | object = _UNSET,
        reminder_at: float | None | object = _UNSET,
        category_id: str | None | object = _UNSET,
    ) -> Task:
        """
        Edit user-facing fields. Completion state only changes via toggle_completion.

        A category reference that no longer resolves is cleared by any edit;
        passing an unknown category_id raises KeyError.
        """
        if title is not None and not title.strip():
            raise ValueError("title is required")
        if (
            category_id is not _UNSET
            and category_id is not None
            and self.categories is not None
            and self.categories.get(category_id) is None  # type: ignore[arg-type]
        ):
            raise KeyError(f"unknown category id {category_id!r}")
        now = self.now()

        def mutate(t: Task) -> Task:
            changes: dict[str, object] = {"updated_at": now}
            if title is not None:
                changes["title"] = title.strip()
            if description is not None:
                changes["description"] = description.strip()
            if due_at is not _UNSET:
                changes["due_at"] = due_at
            if reminder_at is not _UNSET:
                changes["reminder_at"] = reminder_at
                changes["has_reminder"] = reminder_at is not None

            cat = t.category_id if category_id is _UNSET else category_id
            if cat is not None and self.categories is not None and self.categories.get(cat) is None:  # type: ignore[arg-type]
                logger.info("Clearing dangling category reference task_id=%s category_id=%s", t.id, cat)
                cat = None
            changes["category_id"] = cat
            return replace(t, **changes)  # type: ignore[arg-type]

        _, after = self.store.update(task_id, mutate)
        self.reminders.sync(after, now)
        return after

    def delete_task(self, task_id: str) -> Task:
        task = self.store.require(task_id)
        self.reminders.cancel(task.id)
        self.store.remove([task.id])
        logger.info("Task deleted id=%s", task.id)
        return task

    def duplicate_task(self, task_id: str) -> Task:
        src = self.store.require(task_id)
        return self.create_task(
            f"{src.title} (Copy)",
            description=src.description,
            due_at=src.due_at,
            reminder_at=src.reminder_at if src.has_reminder else None,
            category_id=src.category_id,
        )

    # ---- completion ----

    def toggle_completion(self, task_id: str) -> Task:
        now = self.now()

        def mutate(t: Task) -> Task:
            if t.is_completed:
                return replace(t, is_completed=False, completed_at=None, updated_at=now)
            return replace(t, is_completed=True, completed_at=now, updated_at=now)

        _, after = self.store.update(task_id, mutate)

        if after.is_completed:
            self.reminders.cancel(after.id)
            logger.info("Task completed id=%s", after.id)
            for listener in list(self._completion_listeners):
                try:
                    listener(after)
                except Exception:
                    logger.exception("Completion listener failed task_id=%s", after.id)
        else:
            rescheduled = self.reminders.sync(after, now)
            logger.info("Task reopened id=%s reminder_rescheduled=%s", after.id, rescheduled)
        return after

    # ---- retention ----

    def migrate_completion_timestamps(self, now_ts: float | None = None) -> list[Task]:
        """Repair completed_at on records that disagree with is_completed. Returns the changed tasks."""
        now = self.now() if now_ts is None else now_ts
        with self.store.lock:
            current = self.store.snapshot()
            if not any(t.needs_completion_repair() for t in current):
                self._timestamps_migrated = True
                return []
            updated = migrate_completion_timestamps(current, now, self.retention_seconds)
            migrated = [new for old, new in zip(current, updated) if new is not old]
            self.store.replace_all(updated)
        self._timestamps_migrated = True
        logger.info("Completion timestamp migration: %d task(s) updated.", len(migrated))
        return migrated

    def cleanup_evictable(self, now_ts: float | None = None) -> EvictionResult:
        """
        Remove completed tasks whose retention window has passed.

        Reminders are cancelled for evicted tasks even though completed tasks
        should not have any. Calling this twice with the same now_ts evicts
        nothing the second time.
        """
        now = self.now() if now_ts is None else now_ts
        with self.store.lock:
            result = partition_evictable(self.store.snapshot(), now, self.retention_seconds)
            if result.evicted:
                self.store.remove(t.id for t in result.evicted)

        for t in result.evicted:
            self.reminders.cancel(t.id)
        if result.evicted:
            logger.info(
                "Auto-deleted %d completed task(s) older than %.0f days.",
                len(result.evicted),
                self.retention_seconds / 86400.0,
            )
        return result

    def detect_overdue(self, now_ts: float | None = None) -> list[Task]:
        now = self.now() if now_ts is None else now_ts
        overdue = detect_overdue(self.store.snapshot(), now)
        if overdue:
            try:
                self._notifier.tasks_overdue(overdue)
            except Exception:
                logger.exception("Notifier.tasks_overdue failed.")
        return overdue

    def perform_maintenance(self, now_ts: float | None = None) -> MaintenanceReport:
        """
        migrate timestamps -> evict -> detect overdue -> badge count.

        Safe to call as often as the app likes: with nothing to migrate or
        evict it only scans the in-memory collection and writes nothing.
        """
        started = time.perf_counter()
        now = self.now() if now_ts is None else now_ts
        report = MaintenanceReport()

        # The flag skips the scan; a re-check still catches records inserted later.
        if not self._timestamps_migrated or any(t.needs_completion_repair() for t in self.store.snapshot()):
            report.migrated = self.migrate_completion_timestamps(now)

        report.evicted = self.cleanup_evictable(now).evicted
        report.overdue = self.detect_overdue(now)
        if self.badge_enabled:
            report.badge_count = self.store.badge_count(now)

        report.duration_ms = (time.perf_counter() - started) * 1000.0
        logger.debug(
            "Maintenance done migrated=%d evicted=%d overdue=%d badge=%s in %.1fms",
            len(report.migrated),
            len(report.evicted),
            len(report.overdue),
            report.badge_count,
            report.duration_ms,
        )
        return report

    # ---- inbound reminder callback ----

    def on_reminder_fired(self, task_id: str, payload: ReminderPayload | None = None) -> Task | None:
        """Forward a fired reminder to the notifier. Task state is not touched."""
        task = self.store.get(task_id)
        if task is None or task.is_completed:
            logger.debug("Ignoring reminder for task_id=%s (gone or completed).", task_id)
            return None
        try:
            self._notifier.reminder_fired(task, payload or build_payload(task))
        except Exception:
            logger.exception("Notifier.reminder_fired failed task_id=%s", task_id)
        return task

    def resync_reminders(self, now_ts: float | None = None) -> int:
        """Re-arm reminders for every task (cold start: the backend starts empty)."""
        now = self.now() if now_ts is None else now_ts
        n = 0
        for t in self.store.snapshot():
            if t.wants_reminder(now):
                n += 1 if self.reminders.sync(t, now) else 0
        return n
