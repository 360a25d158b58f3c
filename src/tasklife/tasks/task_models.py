# src/tasklife/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

DAY_SECONDS = 86400.0
DEFAULT_RETENTION_SECONDS = 7 * DAY_SECONDS
BADGE_CAP = 99

UNCATEGORIZED_NAME = "Uncategorized"


def new_id() -> str:
    return str(uuid.uuid4())


class CategoryColor(StrEnum):
    """Symbolic color keys. The core stores them, the UI maps them to paint."""

    BLUE = "blue"
    GREEN = "green"
    ORANGE = "orange"
    RED = "red"
    PURPLE = "purple"
    INDIGO = "indigo"
    PINK = "pink"
    TEAL = "teal"
    YELLOW = "yellow"
    GRAY = "gray"


class TaskFilter(StrEnum):
    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"

    @classmethod
    def parse(cls, raw: str | None) -> TaskFilter:
        if not raw:
            return cls.ALL
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.ALL


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    color_key: str
    is_custom: bool


@dataclass(frozen=True, slots=True)
class BuiltinCategory:
    name: str
    color_key: str
    fixed_id: str

    def to_category(self) -> Category:
        return Category(id=self.fixed_id, name=self.name, color_key=str(self.color_key), is_custom=False)


# Persisted task references point at these ids forever. Never edit a fixed_id.
BUILTIN_CATEGORIES: tuple[BuiltinCategory, ...] = (
    BuiltinCategory("Work", CategoryColor.BLUE, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d01"),
    BuiltinCategory("Personal", CategoryColor.GREEN, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d02"),
    BuiltinCategory("Shopping", CategoryColor.ORANGE, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d03"),
    BuiltinCategory("Health", CategoryColor.RED, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d04"),
    BuiltinCategory("Learning", CategoryColor.PURPLE, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d05"),
    BuiltinCategory("Travel", CategoryColor.INDIGO, "3f0d6a52-8c1e-4b7a-9d2f-6e1a0c5b7d06"),
)

BUILTIN_BY_ID: dict[str, BuiltinCategory] = {b.fixed_id: b for b in BUILTIN_CATEGORIES}
BUILTIN_BY_NAME: dict[str, BuiltinCategory] = {b.name.lower(): b for b in BUILTIN_CATEGORIES}


def builtin_categories() -> list[Category]:
    return [b.to_category() for b in BUILTIN_CATEGORIES]


def builtin_for_name(name: str | None) -> BuiltinCategory | None:
    if not name:
        return None
    return BUILTIN_BY_NAME.get(name.strip().lower())


def _local_day(ts: float) -> datetime:
    return datetime.fromtimestamp(ts).replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True, slots=True)
class Task:
    """
    One task record.

    Invariant: is_completed == (completed_at is not None). Only records read
    from an older store may break it, until migrate_completion_timestamps runs.
    """

    id: str
    title: str
    description: str = ""
    is_completed: bool = False
    completed_at: float | None = None
    due_at: float | None = None
    has_reminder: bool = False
    reminder_at: float | None = None
    category_id: str | None = None
    created_at: float = 0.0
    updated_at: float = 0.0

    # ---- derived state ----

    def is_overdue(self, now_ts: float) -> bool:
        return self.due_at is not None and not self.is_completed and self.due_at < now_ts

    def is_pending(self, now_ts: float) -> bool:
        """Future due date and not completed."""
        return self.due_at is not None and not self.is_completed and self.due_at >= now_ts

    def is_due_today(self, now_ts: float) -> bool:
        if self.due_at is None:
            return False
        return _local_day(self.due_at) == _local_day(now_ts)

    def is_due_future(self, now_ts: float) -> bool:
        """Due after the start of tomorrow (local time)."""
        if self.due_at is None:
            return False
        tomorrow = _local_day(now_ts) + timedelta(days=1)
        return self.due_at > tomorrow.timestamp()

    def days_until_due(self, now_ts: float) -> int | None:
        """Whole local calendar days from today to the due day; negative once past."""
        if self.due_at is None:
            return None
        return (_local_day(self.due_at).date() - _local_day(now_ts).date()).days

    def needs_completion_timestamp(self) -> bool:
        return self.is_completed and self.completed_at is None

    def has_stale_completion_timestamp(self) -> bool:
        """Pending, yet still carrying the completion time of an earlier completion."""
        return not self.is_completed and self.completed_at is not None

    def needs_completion_repair(self) -> bool:
        return self.needs_completion_timestamp() or self.has_stale_completion_timestamp()

    def is_evictable(self, now_ts: float, retention_seconds: float = DEFAULT_RETENTION_SECONDS) -> bool:
        if not self.is_completed or self.completed_at is None:
            return False
        return now_ts - self.completed_at >= retention_seconds

    def wants_reminder(self, now_ts: float) -> bool:
        """True when a callback should be pending for this task right now."""
        if self.is_completed or not self.has_reminder or self.reminder_at is None:
            return False
        return self.reminder_at > now_ts

    def counts_for_badge(self, now_ts: float) -> bool:
        if self.is_completed:
            return False
        if self.due_at is None:
            return True
        return self.is_due_today(now_ts) or self.due_at < now_ts
