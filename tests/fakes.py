# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from tasklife.core.ports import ReminderPayload
from tasklife.tasks.task_models import Task


@dataclass(slots=True)
class FakeScheduler:
    """
    In-memory ReminderScheduler.

    active holds at most one entry per task id, like a real backend;
    calls records every schedule/cancel for ordering assertions.
    """

    active: dict[str, tuple[float, ReminderPayload]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def schedule(self, task_id: str, fire_at: float, payload: ReminderPayload) -> None:
        self.calls.append(("schedule", task_id))
        self.active[task_id] = (fire_at, payload)

    def cancel(self, task_id: str) -> None:
        self.calls.append(("cancel", task_id))
        self.active.pop(task_id, None)

    def scheduled_ids(self) -> list[str]:
        return sorted(self.active)


class FailingScheduler:
    """Scheduler whose backend is unavailable (permission denied, quota, ...)."""

    def schedule(self, task_id: str, fire_at: float, payload: ReminderPayload) -> None:
        raise RuntimeError("notifications not permitted")

    def cancel(self, task_id: str) -> None:
        raise RuntimeError("notifications not permitted")


@dataclass(slots=True)
class FakeNotifier:
    fired: list[tuple[str, ReminderPayload]] = field(default_factory=list)
    overdue: list[list[str]] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    def reminder_fired(self, task: Task, payload: ReminderPayload) -> None:
        self.fired.append((task.id, payload))

    def tasks_overdue(self, tasks: list[Task]) -> None:
        self.overdue.append([t.id for t in tasks])

    def scheduler_failed(self, task_id: str, error: BaseException) -> None:
        self.failures.append(task_id)


class FakeClock:
    """Deterministic clock for LifecycleEngine(clock=...)."""

    def __init__(self, now: float) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now
