"""
rankkeeper/scheduler.py
Runs synchronization work in the background so store mutations return immediately.
"""

import threading
from typing import Callable, List, Optional
from rankkeeper.logger import create_logger

logger = create_logger()

Task = Callable[[], None]


class ThreadScheduler:
    """Starts each task on its own daemon thread"""

    def __init__(self):
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def submit(self, task: Task) -> None:
        def run():
            try:
                task()
            except Exception:
                logger.exception("Background task failed.")

        thread = threading.Thread(target=run, daemon=True)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every task submitted so far, including tasks they submit"""
        while True:
            with self._lock:
                pending = [t for t in self._threads if t.is_alive()]
            if not pending:
                return
            for thread in pending:
                thread.join(timeout)
            if timeout is not None:
                return


class ManualScheduler:
    """
    Queues tasks until drain() is called on the current thread.
    Used by tests and the CLI to run sync work deterministically.
    """

    def __init__(self):
        self._tasks: List[Task] = []
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._tasks)

    def submit(self, task: Task) -> None:
        with self._lock:
            self._tasks.append(task)

    def drain(self, timeout: Optional[float] = None) -> None:
        while True:
            with self._lock:
                if not self._tasks:
                    return
                task = self._tasks.pop(0)
            try:
                task()
            except Exception:
                logger.exception("Background task failed.")
