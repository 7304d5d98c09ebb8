from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from skygrid.common.types import Cell, cell_name
from skygrid.engine.collaborators import Scheduler

DEFAULT_RESERVATION_TIMEOUT = 300.0


@dataclass(frozen=True, eq=False)
class Reservation:
    """Stamp recorded for one reserve call.

    Compared by identity: a refreshed reservation is a new object even when
    the clock reads the same instant.
    """

    cell: Cell
    reserved_at: float


class ReservationTable:
    """Short-lived soft locks on cells between selection and confirmation."""

    def __init__(
        self,
        scheduler: Scheduler,
        timeout_seconds: float = DEFAULT_RESERVATION_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scheduler = scheduler
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._entries: dict[str, Reservation] = {}
        self._lock = threading.Lock()

    def reserve(self, cell: Cell) -> None:
        name = cell_name(cell)
        stamp = Reservation(cell=cell, reserved_at=self._clock())
        with self._lock:
            self._entries[name] = stamp
        self.scheduler.run_after_delay(lambda: self._expire(name, stamp), self.timeout_seconds)

    def _expire(self, name: str, stamp: Reservation) -> None:
        with self._lock:
            if self._entries.get(name) is stamp:
                del self._entries[name]

    def is_reserved(self, cell: Cell) -> bool:
        with self._lock:
            stamp = self._entries.get(cell_name(cell))
            if stamp is None:
                return False
            return self._clock() - stamp.reserved_at < self.timeout_seconds

    def release(self, cell: Cell) -> bool:
        with self._lock:
            return self._entries.pop(cell_name(cell), None) is not None

    def reserved_cells(self) -> list[Reservation]:
        now = self._clock()
        with self._lock:
            return [
                stamp
                for stamp in self._entries.values()
                if now - stamp.reserved_at < self.timeout_seconds
            ]

    def __len__(self) -> int:
        return len(self.reserved_cells())
