# src/tasklife/tasks/reminders.py

from __future__ import annotations

"""
Reminder scheduling.

ReminderCoordinator translates task state into schedule/cancel calls on a
ReminderScheduler port. Scheduler failures never roll back the task edit that
caused them: they are logged and forwarded to the Notifier, and the reminder
simply does not fire.

AsyncioReminderScheduler is the in-process backend used by the console app:
one loop.call_later handle per task id, callable from any thread.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from ..core.ports import Notifier, NullNotifier, ReminderPayload, ReminderScheduler
from .task_models import Task

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Task Reminder"

FireCallback = Callable[[str, ReminderPayload], None]


def build_payload(task: Task) -> ReminderPayload:
    return ReminderPayload(title=REMINDER_TITLE, body=task.title)


class ReminderCoordinator:
    def __init__(self, scheduler: ReminderScheduler, notifier: Notifier | None = None) -> None:
        self._scheduler = scheduler
        self._notifier: Notifier = notifier or NullNotifier()

    def sync(self, task: Task, now_ts: float) -> bool:
        """
        Make the scheduler agree with the task.

        Returns True when a reminder is (re)scheduled. A reminder time that is
        already in the past is cancelled, never fired retroactively.
        """
        if task.wants_reminder(now_ts) and task.reminder_at is not None:
            return self.schedule(task, task.reminder_at)
        self.cancel(task.id)
        return False

    def schedule(self, task: Task, fire_at: float) -> bool:
        try:
            self._scheduler.schedule(task.id, fire_at, build_payload(task))
        except Exception as e:
            logger.warning("Reminder schedule failed task_id=%s: %r", task.id, e)
            self._report(task.id, e)
            return False
        logger.debug("Reminder scheduled task_id=%s fire_at=%s", task.id, fire_at)
        return True

    def cancel(self, task_id: str) -> None:
        try:
            self._scheduler.cancel(task_id)
        except Exception as e:
            logger.warning("Reminder cancel failed task_id=%s: %r", task_id, e)
            self._report(task_id, e)

    def _report(self, task_id: str, error: BaseException) -> None:
        try:
            self._notifier.scheduler_failed(task_id, error)
        except Exception:
            logger.exception("Notifier.scheduler_failed crashed task_id=%s", task_id)


class AsyncioReminderScheduler:
    """
    ReminderScheduler backed by an asyncio event loop.

    - schedule() replaces any pending handle for the task id
    - cancel() drops it (no-op when absent)
    - calls from other threads are marshalled with call_soon_threadsafe

    The loop may be attached later (bind()) because the console app creates
    its event loop in a background thread after the stores are built.
    Requests made before bind() are kept and armed on bind.
    """

    def __init__(self, on_fire: FireCallback | None = None, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._on_fire = on_fire
        self._loop = loop
        self._lock = threading.Lock()
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._pending: dict[str, tuple[float, ReminderPayload]] = {}

    def set_fire_callback(self, on_fire: FireCallback) -> None:
        self._on_fire = on_fire

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._loop = loop
            queued = dict(self._pending)
        for task_id, (fire_at, payload) in queued.items():
            self._dispatch(self._arm, task_id, fire_at, payload)

    def scheduled_ids(self) -> list[str]:
        with self._lock:
            return sorted(set(self._pending) | set(self._handles))

    # ---- ReminderScheduler ----

    def schedule(self, task_id: str, fire_at: float, payload: ReminderPayload) -> None:
        with self._lock:
            self._pending[task_id] = (fire_at, payload)
            bound = self._loop is not None
        if bound:
            self._dispatch(self._arm, task_id, fire_at, payload)

    def cancel(self, task_id: str) -> None:
        with self._lock:
            self._pending.pop(task_id, None)
            bound = self._loop is not None
        if bound:
            self._dispatch(self._disarm, task_id)

    # ---- loop-thread side ----

    def _dispatch(self, fn: Callable[..., None], *args: object) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            fn(*args)
        else:
            loop.call_soon_threadsafe(fn, *args)

    def _arm(self, task_id: str, fire_at: float, payload: ReminderPayload) -> None:
        with self._lock:
            if self._pending.get(task_id) != (fire_at, payload):
                # cancelled or replaced before this call ran
                return
            old = self._handles.pop(task_id, None)
        if old is not None:
            old.cancel()

        loop = self._loop
        if loop is None or loop.is_closed():
            return
        delay = max(0.0, fire_at - time.time())
        handle = loop.call_later(delay, self._fire, task_id, payload)
        with self._lock:
            self._handles[task_id] = handle

    def _disarm(self, task_id: str) -> None:
        with self._lock:
            if task_id in self._pending:
                # re-scheduled after the cancel was queued
                return
            handle = self._handles.pop(task_id, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, task_id: str, payload: ReminderPayload) -> None:
        with self._lock:
            self._handles.pop(task_id, None)
            self._pending.pop(task_id, None)
        if self._on_fire is None:
            logger.info("Reminder fired task_id=%s (no listener).", task_id)
            return
        try:
            self._on_fire(task_id, payload)
        except Exception:
            logger.exception("Reminder callback failed task_id=%s", task_id)
