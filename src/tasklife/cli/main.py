# src/tasklife/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the reminder/maintenance event loop in a background thread,
- console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.background import start_background
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tasklife")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasklife"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    runner = start_background(state)
    if runner is None:
        logger.warning("Reminders and periodic maintenance are unavailable this session.")

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except Exception:
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            # Ctrl+C inside input() should still end the REPL normally.
            signal.signal(signal.SIGINT, signal.default_int_handler)
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running reminders/maintenance only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)

        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
