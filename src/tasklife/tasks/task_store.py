# src/tasklife/tasks/task_store.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from ..core.ports import SearchIndex
from .task_db import TaskDB
from .task_models import BADGE_CAP, Task, TaskFilter
from .writer import PersistenceWriter

logger = logging.getLogger(__name__)

CategoryNameResolver = Callable[[str | None], str]


class TaskStore:
    """
    In-memory ordered task collection backed by TaskDB.

    Concurrency:
    - one coarse re-entrant lock around the whole collection
    - every mutation swaps in a complete Task value under the lock, so readers
      never see a half-applied change
    - persistence goes through the optional PersistenceWriter (write-behind);
      writes are queued under the lock so they reach disk in mutation order,
      the disk I/O itself happens on the writer thread

    The store knows nothing about reminders; the lifecycle engine drives those.
    """

    def __init__(
        self,
        db: TaskDB,
        *,
        writer: PersistenceWriter | None = None,
        index: SearchIndex | None = None,
        category_name: CategoryNameResolver | None = None,
    ) -> None:
        self._db = db
        self._writer = writer
        self._index = index
        self._category_name = category_name
        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self.load_errors: list[str] = []

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def set_category_resolver(self, resolver: CategoryNameResolver | None) -> None:
        self._category_name = resolver

    # ---- persistence ----

    def load(self) -> list[Task]:
        tasks, errors = self._db.load_tasks()
        with self._lock:
            self._tasks = list(tasks)
            self.load_errors = list(self._db.load_errors) + errors
        for err in errors:
            logger.warning("TaskStore load: %s", err)
        logger.info("TaskStore loaded total=%d errors=%d", len(tasks), len(errors))
        return list(tasks)

    def flush(self) -> None:
        if self._writer is not None:
            self._writer.flush()

    def _write(self, op: Callable[[], None]) -> None:
        if self._writer is not None:
            self._writer.submit(op)
            return
        try:
            op()
        except Exception:
            logger.exception("Task write failed.")

    # ---- index hooks ----

    def index_fields(self, task: Task) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "title": task.title,
            "description": task.description,
            "is_completed": task.is_completed,
            "due_at": task.due_at,
        }
        if self._category_name is not None:
            fields["category"] = self._category_name(task.category_id)
        return fields

    def _index_update(self, task: Task) -> None:
        if self._index is None:
            return
        try:
            self._index.update_index(task.id, self.index_fields(task))
        except Exception:
            logger.exception("update_index failed task_id=%s", task.id)

    def _index_remove(self, task_id: str) -> None:
        if self._index is None:
            return
        try:
            self._index.remove_from_index(task_id)
        except Exception:
            logger.exception("remove_from_index failed task_id=%s", task_id)

    def reindex_all(self) -> int:
        tasks = self.snapshot()
        for t in tasks:
            self._index_update(t)
        return len(tasks)

    # ---- reads ----

    def snapshot(self) -> list[Task]:
        with self._lock:
            return list(self._tasks)

    def count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            for t in self._tasks:
                if t.id == task_id:
                    return t
        return None

    def require(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task is None:
            raise KeyError(task_id)
        return task

    # ---- mutations ----

    def insert(self, task: Task) -> Task:
        if not task.title.strip():
            raise ValueError("title is required")
        with self._lock:
            if any(t.id == task.id for t in self._tasks):
                raise ValueError(f"task {task.id} already exists")
            self._tasks.append(task)
            self._after_change(task)
        logger.debug("Task added id=%s title=%s", task.id, task.title)
        return task

    def _swap_locked(self, task: Task) -> None:
        for i, t in enumerate(self._tasks):
            if t.id == task.id:
                self._tasks[i] = task
                return
        raise KeyError(task.id)

    def _after_change(self, task: Task) -> None:
        self._index_update(task)
        self._write(lambda: self._db.upsert_task(task))

    def replace(self, task: Task) -> Task:
        with self._lock:
            self._swap_locked(task)
            self._after_change(task)
        return task

    def update(self, task_id: str, mutate: Callable[[Task], Task]) -> tuple[Task, Task]:
        """
        Apply mutate() to the current value atomically.

        Returns (before, after). mutate must return a new Task with the same id.
        """
        with self._lock:
            before = self.require(task_id)
            after = mutate(before)
            if after.id != before.id:
                raise ValueError("mutation must not change the task id")
            self._swap_locked(after)
            self._after_change(after)
        return before, after

    def remove(self, task_ids: Iterable[str]) -> list[Task]:
        ids = set(task_ids)
        if not ids:
            return []
        with self._lock:
            removed = [t for t in self._tasks if t.id in ids]
            if not removed:
                return []
            self._tasks = [t for t in self._tasks if t.id not in ids]
            for t in removed:
                self._index_remove(t.id)
            removed_ids = [t.id for t in removed]
            self._write(lambda: self._db.delete_tasks(removed_ids))
        return removed

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Swap the whole collection (used by load-time migrations) and rewrite storage."""
        new_tasks = list(tasks)
        with self._lock:
            self._tasks = new_tasks
            self._write(lambda: self._db.save_tasks(new_tasks))

    def move(self, from_index: int, to_index: int) -> bool:
        with self._lock:
            n = len(self._tasks)
            if from_index == to_index or not (0 <= from_index < n) or not (0 <= to_index < n):
                return False
            moved = self._tasks.pop(from_index)
            self._tasks.insert(to_index, moved)
            ordered = list(self._tasks)
            self._write(lambda: self._db.save_tasks(ordered))
        return True

    def assign_category(self, category_id: str | None, task_ids: Iterable[str], *, now_ts: float) -> list[Task]:
        ids = set(task_ids)
        changed: list[Task] = []
        with self._lock:
            for i, t in enumerate(self._tasks):
                if t.id in ids and t.category_id != category_id:
                    self._tasks[i] = replace(t, category_id=category_id, updated_at=now_ts)
                    changed.append(self._tasks[i])
            for t in changed:
                self._after_change(t)
        return changed

    # ---- queries ----

    def tasks_for_category(self, category_id: str | None) -> list[Task]:
        """None selects tasks without a category reference."""
        return [t for t in self.snapshot() if t.category_id == category_id]

    def filtered(
        self,
        *,
        now_ts: float,
        category_id: str | None = None,
        search_text: str = "",
        status: TaskFilter = TaskFilter.ALL,
    ) -> list[Task]:
        """
        Filter for list views.

        Sort order: incomplete first, then by due date (dated tasks before
        undated ones), then newest first.
        """
        out = self.snapshot()

        if category_id is not None:
            out = [t for t in out if t.category_id == category_id]

        needle = search_text.strip().lower()
        if needle:
            out = [t for t in out if needle in t.title.lower() or needle in t.description.lower()]

        if status == TaskFilter.PENDING:
            out = [t for t in out if not t.is_completed and not t.is_overdue(now_ts)]
        elif status == TaskFilter.COMPLETED:
            out = [t for t in out if t.is_completed]
        elif status == TaskFilter.OVERDUE:
            out = [t for t in out if t.is_overdue(now_ts)]

        def sort_key(t: Task) -> tuple:
            has_due = t.due_at is not None
            return (t.is_completed, not has_due, t.due_at if has_due else 0.0, -t.created_at)

        return sorted(out, key=sort_key)

    def overdue(self, now_ts: float) -> list[Task]:
        return [t for t in self.snapshot() if t.is_overdue(now_ts)]

    def pending(self, now_ts: float) -> list[Task]:
        return [t for t in self.snapshot() if t.is_pending(now_ts)]

    def due_today(self, now_ts: float) -> list[Task]:
        return [t for t in self.snapshot() if t.is_due_today(now_ts)]

    def due_future(self, now_ts: float) -> list[Task]:
        return [t for t in self.snapshot() if t.is_due_future(now_ts) and not t.is_completed]

    def completed(self) -> list[Task]:
        return [t for t in self.snapshot() if t.is_completed]

    def no_due_date(self) -> list[Task]:
        return [t for t in self.snapshot() if t.due_at is None and not t.is_completed]

    def badge_count(self, now_ts: float, cap: int = BADGE_CAP) -> int:
        n = sum(1 for t in self.snapshot() if t.counts_for_badge(now_ts))
        return min(n, cap)
