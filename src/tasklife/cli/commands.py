# src/tasklife/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..tasks.task_models import CategoryColor, Task, TaskFilter
from .timeparse import format_ts, parse_when

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            # unbalanced quotes: fall back to plain whitespace split
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except (KeyError, ValueError) as e:
            # user errors: unknown task ref, bad date, duplicate name, ...
            msg = e.args[0] if e.args else str(e)
            return f"Error: {msg}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate free words from key=value options."""
    words: list[str] = []
    opts: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key and key.isidentifier():
            opts[key.lower()] = value
        else:
            words.append(a)
    return words, opts


def _is_none(value: str) -> bool:
    return value.strip().lower() in ("", "none", "-", "off")


def _resolve_task(state: AppState, ref: str) -> Task:
    """
    Find a task by:
    - position in the last /list output (1-based), else in store order
    - unique id prefix
    """
    ref = (ref or "").strip()
    if not ref:
        raise ValueError("task reference is required")

    if ref.isdigit():
        n = int(ref)
        ids = state.last_listing or [t.id for t in state.store.snapshot()]
        if 1 <= n <= len(ids):
            task = state.store.get(ids[n - 1])
            if task is not None:
                return task
        raise KeyError(f"no task #{n}")

    matches = [t for t in state.store.snapshot() if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise KeyError(f"no task with id {ref!r}")
    raise ValueError(f"ambiguous task id {ref!r}")


def _resolve_category_id(state: AppState, name: str) -> str | None:
    if _is_none(name):
        return None
    cat = state.categories.find_by_name(name)
    if cat is None:
        raise KeyError(f"unknown category {name!r}")
    return cat.id


def _due_label(days: int | None) -> str:
    if days is None:
        return "-"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days < 0:
        return f"{-days}d ago"
    return f"in {days}d"


def _format_task(state: AppState, n: int, t: Task, now_ts: float) -> str:
    box = "[x]" if t.is_completed else "[ ]"
    parts = [f"{n:>2}. {box} {t.title}"]
    parts.append(f"({state.categories.display_name(t.category_id)})")
    if t.due_at is not None:
        flag = " OVERDUE" if t.is_overdue(now_ts) else ""
        parts.append(f"due {format_ts(t.due_at)} ({_due_label(t.days_until_due(now_ts))}){flag}")
    if t.has_reminder and t.reminder_at is not None:
        parts.append(f"remind {format_ts(t.reminder_at)}")
    parts.append(f"#{t.id[:8]}")
    return " ".join(parts)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    now = state.engine.now()
    store = state.store
    report = state.maintenance.last_report
    scheduled = getattr(state.scheduler, "scheduled_ids", None)
    lines = [
        "Status:",
        f"  Tasks: {store.count()} (completed {len(store.completed())}, overdue {len(store.overdue(now))})",
        f"  Badge: {store.badge_count(now)}",
        f"  Categories: {len(state.categories.categories)} (custom {len(state.categories.custom_categories())})",
        f"  Retention: {state.engine.retention_seconds / 86400.0:.0f} days",
    ]
    if callable(scheduled):
        lines.append(f"  Reminders armed: {len(scheduled())}")
    if report is not None:
        lines.append(
            f"  Last maintenance: evicted {len(report.evicted)}, migrated {len(report.migrated)}"
            f" ({report.duration_ms:.1f}ms)"
        )
    if state.load_errors:
        lines.append(f"  Load problems: {len(state.load_errors)} (see log)")
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title...> [desc=...] [due=...] [remind=...] [cat=...]
    """
    words, opts = _split_options(args)
    title = " ".join(words).strip()
    if not title:
        return "Usage: /add <title> [desc=...] [due=+1d|YYYY-MM-DD] [remind=+2h] [cat=Work]"

    now = state.engine.now()
    due_at = parse_when(opts["due"], now_ts=now) if "due" in opts else None
    reminder_at = parse_when(opts["remind"], now_ts=now) if "remind" in opts else None

    if "cat" in opts:
        category_id = _resolve_category_id(state, opts["cat"])
    else:
        suggested = state.categories.suggest_category(title)
        category_id = suggested.id if suggested else None

    task = state.engine.create_task(
        title,
        description=opts.get("desc", ""),
        due_at=due_at,
        reminder_at=reminder_at,
        category_id=category_id,
    )
    return f"Added: {task.title} ({state.categories.display_name(task.category_id)}) #{task.id[:8]}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list [all|pending|completed|overdue] [cat=Name] [text...]
    """
    words, opts = _split_options(args)
    status = TaskFilter.ALL
    if words and words[0].lower() in {f.value for f in TaskFilter}:
        status = TaskFilter.parse(words.pop(0))

    category_id = _resolve_category_id(state, opts["cat"]) if "cat" in opts else None
    now = state.engine.now()
    tasks = state.store.filtered(
        now_ts=now,
        category_id=category_id,
        search_text=" ".join(words),
        status=status,
    )
    state.last_listing = [t.id for t in tasks]
    if not tasks:
        return "No tasks."
    return "\n".join(_format_task(state, i, t, now) for i, t in enumerate(tasks, start=1))


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <n|id>"
    task = _resolve_task(state, args[0])
    after = state.engine.toggle_completion(task.id)
    return f"{'Completed' if after.is_completed else 'Reopened'}: {after.title}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <n|id> [title=...] [desc=...] [due=...|none] [remind=...|none] [cat=...|none]
    """
    if not args:
        return "Usage: /edit <n|id> [title=...] [desc=...] [due=...|none] [remind=...|none] [cat=...|none]"
    task = _resolve_task(state, args[0])
    _, opts = _split_options(args[1:])
    if not opts:
        return "Nothing to change."

    now = state.engine.now()
    changes: dict[str, object] = {}
    if "title" in opts:
        changes["title"] = opts["title"]
    if "desc" in opts:
        changes["description"] = opts["desc"]
    if "due" in opts:
        changes["due_at"] = None if _is_none(opts["due"]) else parse_when(opts["due"], now_ts=now)
    if "remind" in opts:
        changes["reminder_at"] = None if _is_none(opts["remind"]) else parse_when(opts["remind"], now_ts=now)
    if "cat" in opts:
        changes["category_id"] = _resolve_category_id(state, opts["cat"])

    after = state.engine.edit_task(task.id, **changes)  # type: ignore[arg-type]
    return f"Updated: {after.title}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <n|id>"
    task = _resolve_task(state, args[0])
    state.engine.delete_task(task.id)
    state.last_listing = [i for i in state.last_listing if i != task.id]
    return f"Deleted: {task.title}"


def cmd_duplicate(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /dup <n|id>"
    task = _resolve_task(state, args[0])
    copy = state.engine.duplicate_task(task.id)
    return f"Duplicated: {copy.title} #{copy.id[:8]}"


def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <from> <to>: positions in stored order (1-based)."""
    if len(args) != 2 or not all(a.isdigit() for a in args):
        return "Usage: /move <from> <to>"
    src, dst = int(args[0]) - 1, int(args[1]) - 1
    if not state.store.move(src, dst):
        return "Nothing moved."
    state.last_listing = []
    return f"Moved task {src + 1} -> {dst + 1}."


def cmd_categories(state: AppState, args: list[str]) -> str:
    tasks = state.store.snapshot()
    lines = ["Categories:"]
    for c in state.categories.categories:
        total = state.categories.task_count(c.id, tasks)
        done = state.categories.completed_task_count(c.id, tasks)
        kind = "custom" if c.is_custom else "built-in"
        lines.append(f"  {c.name} [{c.color_key}, {kind}] {done}/{total} done")
    uncategorized = sum(1 for t in tasks if state.categories.get(t.category_id) is None)
    lines.append(f"  Uncategorized: {uncategorized}")
    return "\n".join(lines)


def cmd_new_category(state: AppState, args: list[str]) -> str:
    if not args:
        colors = ", ".join(c.value for c in CategoryColor)
        return f"Usage: /newcat <name> [color]  (colors: {colors})"
    color = CategoryColor.BLUE.value
    name_parts = list(args)
    if len(name_parts) > 1 and name_parts[-1].lower() in {c.value for c in CategoryColor}:
        color = name_parts.pop().lower()
    cat = state.categories.create(" ".join(name_parts), color)
    return f"Category created: {cat.name} [{cat.color_key}]"


def cmd_delete_category(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delcat <name>"
    cat = state.categories.find_by_name(" ".join(args))
    if cat is None:
        return f"Unknown category: {' '.join(args)}"
    state.categories.delete(cat.id)
    # Task references are left as they are; they read as Uncategorized from now on.
    orphaned = len(state.store.tasks_for_category(cat.id))
    return f"Category deleted: {cat.name} ({orphaned} task(s) now uncategorized)"


def cmd_find(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /find <text>"
    now = state.engine.now()
    ids = state.index.search(" ".join(args))
    tasks = [t for t in (state.store.get(i) for i in ids) if t is not None]
    state.last_listing = [t.id for t in tasks]
    if not tasks:
        return "No matches."
    return "\n".join(_format_task(state, i, t, now) for i, t in enumerate(tasks, start=1))


def cmd_maintenance(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[MAINT] Running maintenance...")
    ok = state.maintenance.on_maintenance_tick()
    report = state.maintenance.last_report
    if not ok or report is None:
        return "Maintenance failed (see log)."
    badge = "-" if report.badge_count is None else str(report.badge_count)
    return (
        f"Maintenance: migrated {len(report.migrated)}, evicted {len(report.evicted)},"
        f" overdue {len(report.overdue)}, badge {badge}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task/category/reminder totals.")
registry.register("add", cmd_add, help_text="Add a task: /add <title> [due=...] [remind=...] [cat=...].")
registry.register("list", cmd_list, help_text="List tasks: /list [pending|completed|overdue] [cat=...].", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <n|id>.", aliases=["toggle"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n|id> title=... due=... remind=... cat=....")
registry.register("del", cmd_delete, help_text="Delete a task: /del <n|id>.", aliases=["rm"])
registry.register("dup", cmd_duplicate, help_text="Duplicate a task: /dup <n|id>.")
registry.register("move", cmd_move, help_text="Reorder tasks: /move <from> <to>.")
registry.register("cats", cmd_categories, help_text="List categories with task counts.")
registry.register("newcat", cmd_new_category, help_text="Create a custom category: /newcat <name> [color].")
registry.register("delcat", cmd_delete_category, help_text="Delete a custom category: /delcat <name>.")
registry.register("find", cmd_find, help_text="Search tasks: /find <text>.")
registry.register("maint", cmd_maintenance, help_text="Run maintenance now (cleanup + overdue check).")
