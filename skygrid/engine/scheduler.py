from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable

from skygrid.engine.collaborators import Scheduler

logger = logging.getLogger(__name__)


class ThreadScheduler(Scheduler):
    """Runs deferred callbacks on a single background worker thread.

    Tasks are ordered by due time, then by submission order, so ``run_async``
    work queued before a ``flush`` completes before the flush returns.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._tasks: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._stopped = False
        self._worker = threading.Thread(target=self._loop, name="skygrid-scheduler", daemon=True)
        self._worker.start()

    def run_after_delay(self, fn: Callable[[], None], delay_seconds: float) -> None:
        with self._cond:
            if self._stopped:
                raise RuntimeError("Scheduler stopped")
            due = self._clock() + max(0.0, delay_seconds)
            heapq.heappush(self._tasks, (due, next(self._seq), fn))
            self._cond.notify()

    def run_async(self, fn: Callable[[], None]) -> None:
        self.run_after_delay(fn, 0.0)

    def pending(self) -> int:
        with self._cond:
            return len(self._tasks)

    def _loop(self) -> None:
        while True:
            with self._cond:
                while not self._stopped:
                    if not self._tasks:
                        self._cond.wait()
                        continue
                    wait_for = self._tasks[0][0] - self._clock()
                    if wait_for <= 0:
                        break
                    self._cond.wait(wait_for)
                if self._stopped:
                    return
                _, _, fn = heapq.heappop(self._tasks)
            try:
                fn()
            except Exception:
                logger.exception("Scheduled task failed")

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every task already due has run."""
        done = threading.Event()
        self.run_async(done.set)
        return done.wait(timeout)

    def close(self) -> None:
        if self._stopped:
            return
        self.flush(timeout=5)
        with self._cond:
            self._stopped = True
            self._tasks.clear()
            self._cond.notify_all()
        self._worker.join(timeout=2)
