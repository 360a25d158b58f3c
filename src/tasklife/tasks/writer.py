# src/tasklife/tasks/writer.py

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

WriteOp = Callable[[], None]


class PersistenceWriter:
    """
    Write-behind queue for TaskDB writes.

    Mutations hand over a callable and return immediately; a single worker
    thread applies writes in submission order. A failed write is logged and
    dropped, the in-memory state stays authoritative until the next write of
    the same record.

    - flush() blocks until everything submitted so far is on disk.
    - shutdown() drains the queue and stops the worker.
    """

    def __init__(self, name: str = "tasklife-writer") -> None:
        self._queue: queue.Queue[WriteOp | None] = queue.Queue()
        self._stop_requested = False
        self.failures = 0

        def worker() -> None:
            logger.debug("Persistence writer thread started.")
            while True:
                op = self._queue.get()
                try:
                    if op is None:
                        logger.debug("Persistence writer received stop signal.")
                        return
                    op()
                except Exception:
                    self.failures += 1
                    logger.exception("Deferred write failed.")
                finally:
                    self._queue.task_done()

        self._worker = threading.Thread(target=worker, name=name, daemon=True)
        self._worker.start()

    def submit(self, op: WriteOp) -> None:
        if self._stop_requested:
            # Late writes after shutdown still must not be lost.
            try:
                op()
            except Exception:
                self.failures += 1
                logger.exception("Write after writer shutdown failed.")
            return
        self._queue.put(op)

    def flush(self) -> None:
        self._queue.join()

    def shutdown(self, timeout: float = 5.0) -> None:
        if self._stop_requested:
            return
        self._stop_requested = True
        self._queue.put(None)
        self._queue.join()
        self._worker.join(timeout=timeout)
        logger.info("Persistence writer stopped (failures=%d).", self.failures)
