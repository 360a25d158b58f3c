# src/tasklife/tasks/maintenance.py

from __future__ import annotations

"""
Maintenance runner.

Lifecycle collaborators (cold start, foreground transition, the periodic
loop below) call on_maintenance_tick(). A tick never raises: failures are
logged and reported as False so the caller's own loop keeps going.
"""

import asyncio
import logging

from .lifecycle import LifecycleEngine, MaintenanceReport

logger = logging.getLogger(__name__)


class MaintenanceRunner:
    def __init__(self, engine: LifecycleEngine) -> None:
        self._engine = engine
        self.ticks = 0
        self.failures = 0
        self.last_report: MaintenanceReport | None = None

    def on_maintenance_tick(self) -> bool:
        self.ticks += 1
        try:
            report = self._engine.perform_maintenance()
        except Exception:
            self.failures += 1
            logger.exception("Maintenance tick failed (tick=%d).", self.ticks)
            return False

        self.last_report = report
        if report.changed:
            logger.info(
                "Maintenance: migrated=%d evicted=%d overdue=%d",
                len(report.migrated),
                len(report.evicted),
                len(report.overdue),
            )
        return True


async def run_maintenance_loop(
        runner: MaintenanceRunner,
        *,
        interval_seconds: float = 300.0,
        run_immediately: bool = False,
) -> None:
    """
    Simple polling loop.

    Every interval_seconds: runner.on_maintenance_tick().
    The tick runs on the loop thread; the TaskStore lock serializes it with
    user edits coming from the console thread.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    if run_immediately:
        runner.on_maintenance_tick()

    while True:
        await asyncio.sleep(sleep_s)
        runner.on_maintenance_tick()
