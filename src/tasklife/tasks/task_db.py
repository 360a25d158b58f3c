# src/tasklife/tasks/task_db.py

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path

from .task_models import Category, Task

logger = logging.getLogger(__name__)


class TaskDB:
    """
    SQLite persistence for categories and tasks.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Identifiers are TEXT and are written back exactly as they were read.

    Thread-safety:
    - each method opens its own SQLite connection

    Loading never raises: a file that is not a database is moved aside and
    recreated, rows that cannot be decoded are skipped. Both are reported in
    load_errors for the caller to log.
    """

    def __init__(self, db_path: str | Path = "tasklife.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.load_errors: list[str] = []

        try:
            self._ensure_schema()
        except sqlite3.OperationalError:
            # locked / read-only / missing directory: the file itself is fine
            raise
        except sqlite3.DatabaseError as e:
            self._quarantine(e)
            self._ensure_schema()

        logger.info("TaskDB ready db=%s", self._db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _quarantine(self, error: BaseException) -> None:
        """Move an unreadable database file aside so a fresh one can be created."""
        target = self._db_path.with_name(f"{self._db_path.name}.corrupt-{int(time.time())}")
        msg = f"unreadable database {self._db_path} ({error}); moved to {target.name}"
        logger.error("TaskDB: %s", msg)
        self.load_errors.append(msg)

        os.replace(self._db_path, target)
        for suffix in ("-wal", "-shm"):
            sidecar = self._db_path.with_name(self._db_path.name + suffix)
            with contextlib.suppress(FileNotFoundError):
                sidecar.unlink()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color_key TEXT NOT NULL DEFAULT 'gray',
                    is_custom INTEGER NOT NULL DEFAULT 1,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    due_at REAL,
                    has_reminder INTEGER NOT NULL DEFAULT 0,
                    reminder_at REAL,
                    category_id TEXT,
                    created_at REAL NOT NULL DEFAULT 0,
                    updated_at REAL NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            # Migrations (safe): stores written by older versions lack these columns.
            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("TaskDB migration: added column %s.%s", table, name)

            add_col("categories", "position", "INTEGER NOT NULL DEFAULT 0")
            add_col("tasks", "completed_at", "REAL")
            add_col("tasks", "category_id", "TEXT")
            add_col("tasks", "updated_at", "REAL NOT NULL DEFAULT 0")
            add_col("tasks", "position", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_position ON tasks(position)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_category ON tasks(category_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _opt_float(raw: object) -> float | None:
        if raw is None:
            return None
        return float(raw)  # type: ignore[arg-type]

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        task_id = row["id"]
        if not isinstance(task_id, str) or not task_id:
            raise ValueError(f"bad task id {task_id!r}")
        return Task(
            id=task_id,
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            is_completed=bool(row["is_completed"]),
            completed_at=self._opt_float(row["completed_at"]),
            due_at=self._opt_float(row["due_at"]),
            has_reminder=bool(row["has_reminder"]),
            reminder_at=self._opt_float(row["reminder_at"]),
            category_id=row["category_id"] or None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        cat_id = row["id"]
        if not isinstance(cat_id, str) or not cat_id:
            raise ValueError(f"bad category id {cat_id!r}")
        return Category(
            id=cat_id,
            name=str(row["name"] or ""),
            color_key=str(row["color_key"] or "gray"),
            is_custom=bool(row["is_custom"]),
        )

    @staticmethod
    def _task_params(task: Task) -> tuple:
        return (
            task.id,
            task.title,
            task.description,
            1 if task.is_completed else 0,
            task.completed_at,
            task.due_at,
            1 if task.has_reminder else 0,
            task.reminder_at,
            task.category_id,
            float(task.created_at),
            float(task.updated_at),
        )

    # ---- categories ----

    def load_categories(self) -> tuple[list[Category], list[str]]:
        """Return (categories in stored order, decode errors)."""
        errors: list[str] = []
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute("SELECT * FROM categories ORDER BY position ASC, rowid ASC").fetchall()
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            logger.exception("Failed to read categories from %s", self._db_path)
            return [], [f"categories unreadable: {e}"]

        out: list[Category] = []
        for row in rows:
            try:
                out.append(self._row_to_category(row))
            except (TypeError, ValueError, IndexError) as e:
                errors.append(f"skipped category row: {e}")
        return out, errors

    def save_categories(self, categories: Iterable[Category]) -> None:
        """Rewrite the whole category set. Ids are written exactly as given."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM categories")
            conn.executemany(
                "INSERT INTO categories(id, name, color_key, is_custom, position) VALUES (?, ?, ?, ?, ?)",
                [
                    (c.id, c.name, str(c.color_key), 1 if c.is_custom else 0, pos)
                    for pos, c in enumerate(categories)
                ],
            )
            conn.commit()
        finally:
            conn.close()

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def load_tasks(self) -> tuple[list[Task], list[str]]:
        """Return (tasks in user order, decode errors)."""
        errors: list[str] = []
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute("SELECT * FROM tasks ORDER BY position ASC, created_at ASC").fetchall()
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            logger.exception("Failed to read tasks from %s", self._db_path)
            return [], [f"tasks unreadable: {e}"]

        out: list[Task] = []
        for row in rows:
            try:
                out.append(self._row_to_task(row))
            except (TypeError, ValueError, IndexError) as e:
                errors.append(f"skipped task row: {e}")
        return out, errors

    def upsert_task(self, task: Task) -> None:
        """Insert a new task at the end of the order, or update one in place."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description,
                    is_completed, completed_at, due_at,
                    has_reminder, reminder_at, category_id,
                    created_at, updated_at, position
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                        (SELECT COALESCE(MAX(position), -1) + 1 FROM tasks))
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    description = excluded.description,
                    is_completed = excluded.is_completed,
                    completed_at = excluded.completed_at,
                    due_at = excluded.due_at,
                    has_reminder = excluded.has_reminder,
                    reminder_at = excluded.reminder_at,
                    category_id = excluded.category_id,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
                """,
                self._task_params(task),
            )
            conn.commit()
        finally:
            conn.close()

    def save_tasks(self, tasks: Iterable[Task]) -> None:
        """Rewrite the whole task collection, positions taken from iteration order."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks")
            conn.executemany(
                """
                INSERT INTO tasks(
                    id, title, description,
                    is_completed, completed_at, due_at,
                    has_reminder, reminder_at, category_id,
                    created_at, updated_at, position
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [(*self._task_params(t), pos) for pos, t in enumerate(tasks)],
            )
            conn.commit()
        finally:
            conn.close()

    def delete_tasks(self, task_ids: Iterable[str]) -> None:
        ids = [str(x) for x in task_ids if x]
        if not ids:
            return
        conn = self._get_conn()
        try:
            ph = ",".join("?" for _ in ids)
            conn.execute(f"DELETE FROM tasks WHERE id IN ({ph})", ids)
            conn.commit()
        finally:
            conn.close()
