# src/tasklife/connectors/background.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.state import AppState
from ..tasks.maintenance import run_maintenance_loop
from ..tasks.reminders import AsyncioReminderScheduler

logger = logging.getLogger(__name__)


async def _run_background(state: AppState, stop_event: asyncio.Event) -> None:
    """Own the reminder timers and the periodic maintenance loop until stop_event is set."""
    scheduler = state.scheduler
    if isinstance(scheduler, AsyncioReminderScheduler):
        scheduler.bind(asyncio.get_running_loop())
        logger.info("Reminder scheduler bound (%d armed).", len(scheduler.scheduled_ids()))

    interval = float(getattr(state.settings, "maintenance_interval_seconds", 300.0))
    maintenance_task = asyncio.create_task(
        run_maintenance_loop(state.maintenance, interval_seconds=interval)
    )

    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Background loop cancelled.")
    finally:
        maintenance_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await maintenance_task
        logger.info("Background loop stopped.")


@dataclass
class BackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal background stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_background(state: AppState) -> BackgroundRunner | None:
    """
    Start the reminder/maintenance event loop in a background thread.

    Why a thread:
    - console REPL is blocking (input()).
    - reminder timers and the maintenance loop want their own event loop.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_background(state, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="tasklife-background", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread did not initialize properly.")
        return None

    logger.info("Background thread started.")
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
