# src/tasklife/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The lifecycle engine depends on Protocols instead of concrete implementations.
This keeps the reminder backend, search index and UI collaborators swappable
and makes testing easier.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class ReminderPayload:
    """What the notification collaborator shows when a reminder fires."""

    title: str
    body: str


class ReminderScheduler(Protocol):
    """
    Future-callback backend keyed by task id.

    Contract:
    - schedule() replaces any existing schedule for the same task_id,
      so there is at most one pending callback per task.
    - cancel() is a no-op when nothing is scheduled.
    """

    def schedule(self, task_id: str, fire_at: float, payload: ReminderPayload) -> None: ...
    def cancel(self, task_id: str) -> None: ...


class SearchIndex(Protocol):
    def update_index(self, task_id: str, fields: dict[str, Any]) -> None: ...
    def remove_from_index(self, task_id: str) -> None: ...


class Notifier(Protocol):
    """
    UI/notification side of the core.

    None of these calls may change task state.
    """

    def reminder_fired(self, task: Any, payload: ReminderPayload) -> None: ...
    def tasks_overdue(self, tasks: list[Any]) -> None: ...
    def scheduler_failed(self, task_id: str, error: BaseException) -> None: ...


class NullNotifier:
    """Notifier that drops everything. Used when no UI collaborator is wired."""

    def reminder_fired(self, task: Any, payload: ReminderPayload) -> None:
        return

    def tasks_overdue(self, tasks: list[Any]) -> None:
        return

    def scheduler_failed(self, task_id: str, error: BaseException) -> None:
        return
