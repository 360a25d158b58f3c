# src/tasklife/connectors/notifier.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.ports import ReminderPayload
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotifier:
    """
    Notifier that prints user-facing events to the console.

    Overdue reports are de-duplicated: the same set of overdue tasks is only
    announced once, so frequent maintenance ticks do not spam the terminal.
    """

    def __init__(self, emit: Emit | None = None) -> None:
        self._emit = emit or (lambda text: print(text, flush=True))
        self._last_overdue: frozenset[str] = frozenset()

    def _say(self, text: str) -> None:
        try:
            self._emit(f"[{_ts_local()}] {text}")
        except Exception:
            logger.debug("Console emit failed.", exc_info=True)

    def reminder_fired(self, task: Task, payload: ReminderPayload) -> None:
        logger.info("Reminder fired task_id=%s", task.id)
        self._say(f"[REMINDER] {payload.title}: {payload.body}")

    def tasks_overdue(self, tasks: list[Task]) -> None:
        ids = frozenset(t.id for t in tasks)
        new = ids - self._last_overdue
        self._last_overdue = ids
        if not new:
            return
        titles = ", ".join(t.title for t in tasks if t.id in new)
        self._say(f"[OVERDUE] {len(new)} task(s): {titles}")

    def scheduler_failed(self, task_id: str, error: BaseException) -> None:
        self._say(f"[REMINDER] Could not update reminder for task {task_id[:8]}: {error}")
