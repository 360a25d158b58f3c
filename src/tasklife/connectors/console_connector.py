# src/tasklife/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (tasks=%d).", state.store.count())
    _print_ts("[CONSOLE] Manage your tasks. Use /help for commands. Use /exit to quit.\n")
    if state.load_errors:
        _print_ts(f"[CONSOLE] {len(state.load_errors)} stored record(s) could not be loaded (see log).")

    lock = getattr(state, "lock", None)

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., maintenance)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            # bare text is a quick add
            user_input = "/add " + user_input

        try:
            if lock:
                with lock:
                    cmd_response = command_registry.handle(state, user_input, emit=emit)
            else:
                cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            print(f"[{_ts_local()}] {cmd_response}")

    logger.info("Console connector finished.")
