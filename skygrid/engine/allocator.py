from __future__ import annotations

import logging
import math
import threading

from skygrid.common.types import Allocation, AllocationRequest, Cell, PlacementReason
from skygrid.engine.collaborators import OccupancyOracle, OrphanSource
from skygrid.engine.frontier import FrontierStore
from skygrid.engine.geometry import (
    align_cell,
    cardinal_direction,
    spiral_next,
    step_towards,
)
from skygrid.engine.reservations import ReservationTable

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPIRAL_STEPS = 100_000


class SpiralExhaustedError(RuntimeError):
    def __init__(self, start: Cell, steps: int) -> None:
        super().__init__(f"No free island cell within {steps} spiral steps of {start}")
        self.start = start
        self.steps = steps


class IslandAllocator:
    """Decides where the next island goes and reserves it.

    Only one decision runs at a time. The frontier is read and advanced
    exclusively inside that critical section.
    """

    def __init__(
        self,
        oracle: OccupancyOracle,
        orphans: OrphanSource,
        reservations: ReservationTable,
        frontier: FrontierStore,
        island_distance: int,
        max_spiral_steps: int = DEFAULT_MAX_SPIRAL_STEPS,
    ) -> None:
        self.oracle = oracle
        self.orphans = orphans
        self.reservations = reservations
        self._frontier = frontier
        self.island_distance = island_distance
        self.max_spiral_steps = max_spiral_steps
        self._lock = threading.Lock()

    @property
    def frontier(self) -> Cell:
        with self._lock:
            return self._last()

    def is_available(self, cell: Cell) -> bool:
        return not (
            self.oracle.is_in_protected_region(cell)
            or self.oracle.is_occupied(cell)
            or self.reservations.is_reserved(cell)
        )

    def next_island_location(self, request: AllocationRequest) -> Allocation:
        with self._lock:
            allocation = self._decide(request)
            self.reservations.reserve(allocation.cell)
        logger.info(
            "Allocated %s for %s (%s)", allocation.cell, request.actor_id, allocation.reason.value
        )
        return allocation

    def _last(self) -> Cell:
        x, z = self._frontier.get()
        return align_cell(x, z, self.island_distance)

    def _decide(self, request: AllocationRequest) -> Allocation:
        last = self._last()
        d = self.island_distance
        standing = (math.floor(request.x), math.floor(request.z))
        if self.oracle.is_sky_world(request.world) and not self.oracle.is_in_protected_region(
            standing
        ):
            cell = align_cell(request.x, request.z, d)
            if self.is_available(cell):
                _notify(request, "Creating an island at your location")
                return Allocation(cell, PlacementReason.POSITION)
            cell = step_towards(cell, request.yaw, d)
            if self.is_available(cell):
                direction = cardinal_direction(request.yaw)
                _notify(request, f"Creating an island {direction} of you")
                return Allocation(cell, PlacementReason.FACING)

        orphan = self.orphans.next_orphan(self)
        if orphan is not None:
            return Allocation(align_cell(orphan[0], orphan[1], d), PlacementReason.ORPHAN)

        cell = last
        steps = 0
        while not self.is_available(cell):
            if steps >= self.max_spiral_steps:
                logger.error("Spiral search from %s gave up after %s steps", last, steps)
                _notify(request, "Unable to find a free island location, please contact staff")
                raise SpiralExhaustedError(last, steps)
            cell = spiral_next(cell, d)
            steps += 1
        self._frontier.advance(cell)
        return Allocation(cell, PlacementReason.SPIRAL)


def _notify(request: AllocationRequest, message: str) -> None:
    if request.notify is not None:
        request.notify(message)
