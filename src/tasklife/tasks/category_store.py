# src/tasklife/tasks/category_store.py

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from .task_db import TaskDB
from .task_models import (
    BUILTIN_BY_ID,
    UNCATEGORIZED_NAME,
    Category,
    CategoryColor,
    Task,
    builtin_categories,
    builtin_for_name,
    new_id,
)
from .writer import PersistenceWriter

logger = logging.getLogger(__name__)

# title keyword -> built-in category name; first matching group wins
_SUGGESTION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Work", ("meeting", "project", "work", "client", "deadline", "email", "presentation", "conference")),
    ("Shopping", ("buy", "shop", "grocery", "store", "purchase", "market")),
    ("Health", ("doctor", "gym", "exercise", "workout", "health", "medical", "appointment", "dentist")),
    ("Learning", ("study", "learn", "course", "read", "book", "tutorial", "practice", "skill")),
    ("Travel", ("trip", "travel", "flight", "hotel", "vacation", "pack", "passport", "booking")),
)


@dataclass(slots=True)
class MigratedTaskReferences:
    """Result of migrate_legacy_builtins."""

    tasks: list[Task]
    remapped: dict[str, str] = field(default_factory=dict)  # legacy id -> canonical id
    changed_task_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_task_ids)


def migrate_legacy_builtins(tasks: Iterable[Task], legacy_records: Iterable[Category]) -> MigratedTaskReferences:
    """
    Point tasks that reference a legacy built-in record at the canonical fixed id.

    A legacy record is a persisted category carrying a built-in's name under a
    different identifier. Running this twice is a no-op: after the first pass
    no task references a legacy id any more.
    """
    remap: dict[str, str] = {}
    for rec in legacy_records:
        builtin = builtin_for_name(rec.name)
        if builtin is None or rec.id == builtin.fixed_id:
            continue
        remap[rec.id] = builtin.fixed_id

    out: list[Task] = []
    changed: list[str] = []
    for task in tasks:
        target = remap.get(task.category_id or "")
        if target is not None and task.category_id != target:
            out.append(replace(task, category_id=target))
            changed.append(task.id)
        else:
            out.append(task)

    return MigratedTaskReferences(tasks=out, remapped=remap, changed_task_ids=changed)


class CategoryStore:
    """
    Built-in and custom categories.

    Built-ins are rebuilt from BUILTIN_CATEGORIES on every load and never read
    back from storage, so their identifiers cannot drift between runs.
    """

    def __init__(self, db: TaskDB, *, writer: PersistenceWriter | None = None) -> None:
        self._db = db
        self._writer = writer
        self._lock = threading.RLock()
        self._categories: list[Category] = builtin_categories()

        self.legacy_records: list[Category] = []
        self.load_errors: list[str] = []
        # True when what is on disk differs from the canonical in-memory set.
        self.needs_save = False

    # ---- persistence ----

    def load_all(self) -> list[Category]:
        """
        Read persisted categories and rebuild the in-memory set.

        Row classification:
        - built-in id + built-in name      -> ignored (table copy wins)
        - built-in id + other name, or a
          custom row on a built-in id      -> id collision, dropped with a warning
        - built-in name + other id         -> legacy record, kept for migration
        - is_custom                        -> custom category, kept as-is
        - anything else                    -> unknown non-custom row, dropped
        """
        rows, errors = self._db.load_categories()
        errors = list(self._db.load_errors) + errors

        loaded = builtin_categories()
        legacy: list[Category] = []
        needs_save = not rows
        seen_ids = {c.id for c in loaded}

        for rec in rows:
            fixed = BUILTIN_BY_ID.get(rec.id)
            if fixed is not None:
                if rec.is_custom or rec.name.strip().lower() != fixed.name.lower():
                    msg = f"category {rec.name!r} collides with built-in id {rec.id}; dropped"
                    logger.warning("CategoryStore: %s", msg)
                    errors.append(msg)
                    needs_save = True
                continue

            if builtin_for_name(rec.name) is not None:
                logger.info("CategoryStore: legacy built-in record name=%s id=%s", rec.name, rec.id)
                legacy.append(rec)
                needs_save = True
                continue

            if not rec.is_custom:
                msg = f"unknown built-in category {rec.name!r} id={rec.id}; dropped"
                logger.warning("CategoryStore: %s", msg)
                errors.append(msg)
                needs_save = True
                continue

            if rec.id in seen_ids:
                errors.append(f"duplicate category id {rec.id}; dropped")
                needs_save = True
                continue

            seen_ids.add(rec.id)
            loaded.append(rec)

        with self._lock:
            self._categories = loaded
            self.legacy_records = legacy
            self.load_errors = errors
            self.needs_save = needs_save

        logger.info(
            "CategoryStore loaded total=%d custom=%d legacy=%d errors=%d",
            len(loaded),
            sum(1 for c in loaded if c.is_custom),
            len(legacy),
            len(errors),
        )
        return list(loaded)

    def save(self, categories: Iterable[Category] | None = None) -> None:
        """Persist the full set. Identifiers are written exactly as given."""
        with self._lock:
            snapshot = list(self._categories if categories is None else categories)
            self.needs_save = False
        self._write(lambda: self._db.save_categories(snapshot))

    def _write(self, op) -> None:
        if self._writer is not None:
            self._writer.submit(op)
        else:
            op()

    def migrate_legacy_builtins(
        self,
        tasks: Iterable[Task],
        legacy_records: Iterable[Category] | None = None,
    ) -> MigratedTaskReferences:
        records = self.legacy_records if legacy_records is None else list(legacy_records)
        result = migrate_legacy_builtins(tasks, records)
        if result.changed:
            logger.info(
                "Legacy built-in migration: %d task reference(s) rewritten (%d legacy id(s)).",
                len(result.changed_task_ids),
                len(result.remapped),
            )
        return result

    # ---- CRUD ----

    @property
    def categories(self) -> list[Category]:
        with self._lock:
            return list(self._categories)

    def custom_categories(self) -> list[Category]:
        with self._lock:
            return [c for c in self._categories if c.is_custom]

    def _check_name(self, name: str, *, exclude_id: str | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("category name is required")
        if builtin_for_name(name) is not None:
            raise ValueError(f"{name!r} is a built-in category name")
        for c in self._categories:
            if c.id != exclude_id and c.name.lower() == name.lower():
                raise ValueError(f"category {name!r} already exists")
        return name

    def create(self, name: str, color_key: str | CategoryColor = CategoryColor.BLUE) -> Category:
        with self._lock:
            clean = self._check_name(name)
            cat = Category(id=new_id(), name=clean, color_key=str(color_key), is_custom=True)
            self._categories.append(cat)
        logger.info("Category created id=%s name=%s", cat.id, cat.name)
        self.save()
        return cat

    def update(self, category_id: str, *, name: str | None = None, color_key: str | None = None) -> Category:
        with self._lock:
            idx = self._index_of(category_id)
            current = self._categories[idx]
            if not current.is_custom:
                raise ValueError("built-in categories cannot be edited")
            updated = replace(
                current,
                name=self._check_name(name, exclude_id=category_id) if name is not None else current.name,
                color_key=str(color_key) if color_key is not None else current.color_key,
            )
            self._categories[idx] = updated
        self.save()
        return updated

    def delete(self, category_id: str) -> Category:
        """
        Remove a custom category.

        Tasks still pointing at it are not touched; they resolve to
        "Uncategorized" until their next edit.
        """
        with self._lock:
            idx = self._index_of(category_id)
            current = self._categories[idx]
            if not current.is_custom:
                raise ValueError("built-in categories cannot be deleted")
            del self._categories[idx]
        logger.info("Category deleted id=%s name=%s", current.id, current.name)
        self.save()
        return current

    def _index_of(self, category_id: str) -> int:
        for i, c in enumerate(self._categories):
            if c.id == category_id:
                return i
        raise KeyError(category_id)

    # ---- lookup ----

    def get(self, category_id: str | None) -> Category | None:
        if not category_id:
            return None
        with self._lock:
            for c in self._categories:
                if c.id == category_id:
                    return c
        return None

    resolve = get

    def find_by_name(self, name: str) -> Category | None:
        key = (name or "").strip().lower()
        with self._lock:
            for c in self._categories:
                if c.name.lower() == key:
                    return c
        return None

    def display_name(self, category_id: str | None) -> str:
        cat = self.get(category_id)
        return cat.name if cat is not None else UNCATEGORIZED_NAME

    def suggest_category(self, title: str) -> Category | None:
        text = (title or "").lower()
        for cat_name, words in _SUGGESTION_KEYWORDS:
            if any(w in text for w in words):
                return self.find_by_name(cat_name)
        return None

    # ---- statistics ----

    def task_count(self, category_id: str | None, tasks: Iterable[Task]) -> int:
        """Tasks in a category; None counts tasks without a category reference."""
        return sum(1 for t in tasks if t.category_id == category_id)

    def completed_task_count(self, category_id: str | None, tasks: Iterable[Task]) -> int:
        return sum(1 for t in tasks if t.category_id == category_id and t.is_completed)
