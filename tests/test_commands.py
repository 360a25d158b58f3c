# tests/test_commands.py

from __future__ import annotations

from tasklife.cli.commands import CommandRegistry, registry


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/bee y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_add_list_done_flow(state) -> None:
    reply = registry.handle(state, '/add "Buy milk" due=+1d desc="2 liters"')
    assert reply is not None and reply.startswith("Added: Buy milk (Shopping)")

    (task,) = state.store.snapshot()
    assert task.description == "2 liters"
    assert task.due_at is not None

    listing = registry.handle(state, "/list")
    assert "Buy milk" in (listing or "")
    assert state.last_listing == [task.id]

    assert registry.handle(state, "/done 1") == "Completed: Buy milk"
    assert state.store.get(task.id).is_completed is True
    assert registry.handle(state, "/list completed").count("[x]") == 1

    assert registry.handle(state, "/done 1") == "Reopened: Buy milk"
    assert state.store.get(task.id).completed_at is None


def test_add_with_reminder_schedules(state, scheduler) -> None:
    registry.handle(state, "/add Stretch remind=+2h")
    (task,) = state.store.snapshot()
    assert list(scheduler.active) == [task.id]

    registry.handle(state, f"/edit {task.id} remind=none")
    assert scheduler.active == {}


def test_edit_and_errors(state) -> None:
    registry.handle(state, "/add Draft proposal")
    (task,) = state.store.snapshot()

    assert registry.handle(state, '/edit 1 "title=Final proposal" cat=Work') == "Updated: Final proposal"
    edited = state.store.get(task.id)
    assert edited.title == "Final proposal"
    assert state.categories.display_name(edited.category_id) == "Work"

    assert (registry.handle(state, "/edit 1 due=someday") or "").startswith("Error: Invalid time")
    assert (registry.handle(state, "/edit 9 title=x") or "").startswith("Error: no task #9")
    assert (registry.handle(state, "/edit 1 cat=Nope") or "").startswith("Error: unknown category")


def test_delete_duplicate_and_move(state) -> None:
    registry.handle(state, "/add One")
    registry.handle(state, "/add Two")

    assert (registry.handle(state, "/dup 1") or "").startswith("Duplicated: One (Copy)")
    assert [t.title for t in state.store.snapshot()] == ["One", "Two", "One (Copy)"]

    assert registry.handle(state, "/move 3 1") == "Moved task 3 -> 1."
    assert [t.title for t in state.store.snapshot()] == ["One (Copy)", "One", "Two"]

    assert registry.handle(state, "/del 2") == "Deleted: One"
    assert [t.title for t in state.store.snapshot()] == ["One (Copy)", "Two"]


def test_category_commands(state) -> None:
    assert registry.handle(state, "/newcat Garden green") == "Category created: Garden [green]"
    registry.handle(state, "/add Plant tulips cat=Garden")

    cats = registry.handle(state, "/cats") or ""
    assert "Garden [green, custom] 0/1 done" in cats

    assert registry.handle(state, "/delcat Garden") == "Category deleted: Garden (1 task(s) now uncategorized)"
    (task,) = state.store.snapshot()
    assert state.categories.display_name(task.category_id) == "Uncategorized"

    assert registry.handle(state, "/delcat Work") == "Error: built-in categories cannot be deleted"
    assert (registry.handle(state, "/newcat work") or "").startswith("Error:")


def test_find_and_maintenance(state) -> None:
    registry.handle(state, "/add Groceries for the week")
    registry.handle(state, "/add Call plumber")

    found = registry.handle(state, "/find groc") or ""
    assert "Groceries for the week" in found
    assert "plumber" not in found

    notes: list[str] = []
    reply = registry.handle(state, "/maint", emit=notes.append) or ""
    assert reply.startswith("Maintenance: migrated 0, evicted 0")
    assert notes


def test_status_and_help(state) -> None:
    registry.handle(state, "/add Something")
    status = registry.handle(state, "/status") or ""
    assert "Tasks: 1" in status
    assert "Retention: 7 days" in status

    help_text = registry.handle(state, "/help") or ""
    for name in ("add", "list", "done", "edit", "del", "dup", "move", "cats", "newcat", "delcat", "find", "maint"):
        assert f"/{name} " in help_text


def test_list_shows_days_until_due(state) -> None:
    registry.handle(state, "/add Submit form due=today")
    registry.handle(state, "/add Renew passport due=tomorrow")
    registry.handle(state, "/add Someday maybe")

    listing = registry.handle(state, "/list") or ""
    assert "(today)" in listing
    assert "(tomorrow)" in listing
    no_due_line = next(line for line in listing.splitlines() if "Someday maybe" in line)
    assert "due " not in no_due_line
