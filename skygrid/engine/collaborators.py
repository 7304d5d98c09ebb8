from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from skygrid.common.types import Cell

if TYPE_CHECKING:
    from skygrid.engine.allocator import IslandAllocator


class OccupancyOracle(ABC):
    """Read-only view of the world used for collision checks.

    Implementations must tolerate concurrent calls from request threads.
    """

    @abstractmethod
    def is_in_protected_region(self, cell: Cell) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_occupied(self, cell: Cell) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_sky_world(self, world: str) -> bool:
        raise NotImplementedError


class OrphanSource(ABC):
    """Supplies previously abandoned cells for reuse."""

    @abstractmethod
    def next_orphan(self, allocator: IslandAllocator) -> Cell | None:
        raise NotImplementedError


class Scheduler(ABC):
    """Fire-and-forget execution of deferred work."""

    @abstractmethod
    def run_after_delay(self, fn: Callable[[], None], delay_seconds: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def run_async(self, fn: Callable[[], None]) -> None:
        raise NotImplementedError
