from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class TaskLocks:
    """One in-process lock per task id.

    Held around a completion so two requests on the same task cannot both
    create a successor.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[object, threading.Lock] = {}
        self._holders: dict[object, int] = {}

    @contextmanager
    def hold(self, task_id: object) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(task_id, threading.Lock())
            self._holders[task_id] = self._holders.get(task_id, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[task_id] -= 1
                if not self._holders[task_id]:
                    del self._holders[task_id]
                    del self._locks[task_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
