# src/tasklife/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.category_store import CategoryStore
from ..tasks.lifecycle import LifecycleEngine
from ..tasks.maintenance import MaintenanceRunner
from ..tasks.search_index import KeywordIndex
from ..tasks.task_db import TaskDB
from ..tasks.task_store import TaskStore
from ..tasks.writer import PersistenceWriter
from .ports import ReminderScheduler


@dataclass
class AppState:
    """
    Everything the front-ends need, built once by the composition root.

    Passed explicitly to connectors and command handlers; nothing here is a
    module-level singleton.
    """

    # Settings object (real Settings or a test SimpleNamespace).
    settings: Any

    db: TaskDB
    categories: CategoryStore
    store: TaskStore
    index: KeywordIndex
    scheduler: ReminderScheduler
    engine: LifecycleEngine
    maintenance: MaintenanceRunner
    writer: PersistenceWriter | None = None

    load_errors: list[str] = field(default_factory=list)
    # Task ids in the order of the last printed listing (for "/done 2" style references).
    last_listing: list[str] = field(default_factory=list)

    @property
    def lock(self):
        return self.store.lock
