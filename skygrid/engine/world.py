from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from skygrid.common.types import Cell
from skygrid.engine.collaborators import OccupancyOracle, OrphanSource
from skygrid.persist.base import Persistence

if TYPE_CHECKING:
    from skygrid.engine.allocator import IslandAllocator

logger = logging.getLogger(__name__)


class IslandWorld(OccupancyOracle):
    """Occupancy backed by the persisted island registry.

    Spawn is the square of half-width ``spawn_radius`` around the origin.
    """

    def __init__(self, persistence: Persistence, sky_worlds: Iterable[str], spawn_radius: int) -> None:
        self.persistence = persistence
        self.sky_worlds = frozenset(sky_worlds)
        self.spawn_radius = spawn_radius

    def is_in_protected_region(self, cell: Cell) -> bool:
        x, z = cell
        return abs(x) <= self.spawn_radius and abs(z) <= self.spawn_radius

    def is_occupied(self, cell: Cell) -> bool:
        return self.persistence.has_island(cell)

    def is_sky_world(self, world: str) -> bool:
        return world in self.sky_worlds


class OrphanPool(OrphanSource):
    """Abandoned cells queued for reuse.

    A handed-out orphan stays queued until it is confirmed as an island, so a
    lapsed reservation makes it available again.
    """

    def __init__(self, persistence: Persistence, scan_limit: int = 100) -> None:
        self.persistence = persistence
        self.scan_limit = scan_limit

    def abandon(self, cell: Cell) -> bool:
        """Remove an island and queue its cell for reuse."""
        if not self.persistence.remove_island(cell):
            return False
        self.persistence.add_orphan(cell)
        logger.info("Island %s orphaned", cell)
        return True

    def next_orphan(self, allocator: IslandAllocator) -> Cell | None:
        for cell in self.persistence.list_orphans(limit=self.scan_limit):
            if allocator.is_available(cell):
                return cell
            if allocator.oracle.is_occupied(cell) or allocator.oracle.is_in_protected_region(cell):
                logger.debug("Discarding unusable orphan %s", cell)
                self.persistence.remove_orphan(cell)
        return None

    def count(self) -> int:
        return self.persistence.orphan_count()
