# src/tasklife/tasks/search_index.py

from __future__ import annotations

import re
import threading
from typing import Any

_WORD_RE = re.compile(r"\w+", re.UNICODE)

_TEXT_FIELDS = ("title", "description", "category")


def _words(text: str) -> set[str]:
    return {w.lower() for w in _WORD_RE.findall(text or "")}


class KeywordIndex:
    """
    In-memory keyword index implementing the SearchIndex port.

    Each task id maps to the words of its text fields. search() matches every
    query word as a prefix of some indexed word, so "groc" finds "Groceries".
    Completed tasks stay searchable until they are removed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._docs: dict[str, set[str]] = {}
        self._titles: dict[str, str] = {}

    def update_index(self, task_id: str, fields: dict[str, Any]) -> None:
        words: set[str] = set()
        for name in _TEXT_FIELDS:
            value = fields.get(name)
            if isinstance(value, str):
                words |= _words(value)
        with self._lock:
            self._docs[task_id] = words
            self._titles[task_id] = str(fields.get("title") or "")

    def remove_from_index(self, task_id: str) -> None:
        with self._lock:
            self._docs.pop(task_id, None)
            self._titles.pop(task_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._docs

    def search(self, query: str, limit: int = 20) -> list[str]:
        """Return matching task ids, ordered by title."""
        terms = _words(query)
        if not terms:
            return []
        with self._lock:
            hits = [
                task_id
                for task_id, words in self._docs.items()
                if all(any(w.startswith(term) for w in words) for term in terms)
            ]
            hits.sort(key=lambda i: self._titles.get(i, "").lower())
        return hits[: max(0, int(limit))]
