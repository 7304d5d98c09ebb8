from __future__ import annotations

import pytest

from skygrid.engine.allocator import IslandAllocator
from skygrid.engine.collaborators import OccupancyOracle, OrphanSource, Scheduler
from skygrid.engine.frontier import FrontierStore
from skygrid.engine.reservations import ReservationTable
from skygrid.persist.base import Persistence


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ManualScheduler(Scheduler):
    """Runs async work inline and delayed work when the clock is advanced."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delayed: list[tuple[float, object]] = []

    def run_after_delay(self, fn, delay_seconds: float) -> None:
        self.delayed.append((self.clock.now + delay_seconds, fn))

    def run_async(self, fn) -> None:
        fn()

    def advance(self, seconds: float) -> None:
        self.clock.now += seconds
        due = [task for task in self.delayed if task[0] <= self.clock.now]
        self.delayed = [task for task in self.delayed if task[0] > self.clock.now]
        for _, fn in sorted(due, key=lambda task: task[0]):
            fn()


class DummyPersist(Persistence):
    def __init__(self) -> None:
        self.namespaces: dict[str, dict[str, str]] = {}
        self.islands: dict[tuple[int, int], str] = {}
        self.orphans: list[tuple[int, int]] = []
        self.fail_writes = False
        self.loads = 0

    def load_namespace(self, namespace: str):
        self.loads += 1
        return dict(self.namespaces.get(namespace, {}))

    def save_namespace(self, namespace: str, values) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.namespaces[namespace] = dict(values)

    def delete_namespace(self, namespace: str) -> None:
        self.namespaces.pop(namespace, None)

    def add_island(self, cell, owner: str) -> bool:
        if cell in self.islands:
            return False
        self.islands[cell] = owner
        if cell in self.orphans:
            self.orphans.remove(cell)
        return True

    def remove_island(self, cell) -> bool:
        return self.islands.pop(cell, None) is not None

    def has_island(self, cell) -> bool:
        return cell in self.islands

    def list_islands(self, limit: int = 100):
        return [{"x": c[0], "z": c[1], "owner": o, "created_at": 0} for c, o in self.islands.items()]

    def add_orphan(self, cell) -> None:
        if cell not in self.orphans:
            self.orphans.append(cell)

    def list_orphans(self, limit: int = 100):
        return list(self.orphans[:limit])

    def remove_orphan(self, cell) -> bool:
        if cell not in self.orphans:
            return False
        self.orphans.remove(cell)
        return True

    def orphan_count(self) -> int:
        return len(self.orphans)


class StaticOracle(OccupancyOracle):
    def __init__(self, occupied=(), spawn=((0, 0),), sky_worlds=("skyworld",)) -> None:
        self.occupied = set(occupied)
        self.spawn = set(spawn)
        self.sky_worlds = set(sky_worlds)

    def is_in_protected_region(self, cell) -> bool:
        return cell in self.spawn

    def is_occupied(self, cell) -> bool:
        return cell in self.occupied

    def is_sky_world(self, world: str) -> bool:
        return world in self.sky_worlds


class ListOrphans(OrphanSource):
    def __init__(self, cells=()) -> None:
        self.cells = list(cells)
        self.calls = 0

    def next_orphan(self, allocator):
        self.calls += 1
        while self.cells:
            cell = self.cells.pop(0)
            if allocator.is_available(cell):
                return cell
        return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def persist() -> DummyPersist:
    return DummyPersist()


@pytest.fixture
def make_allocator(clock, scheduler, persist):
    def _make(oracle=None, orphans=None, distance=100, timeout=300.0, max_steps=10_000):
        reservations = ReservationTable(scheduler, timeout_seconds=timeout, clock=clock)
        frontier = FrontierStore(persist, scheduler)
        return IslandAllocator(
            oracle=oracle or StaticOracle(),
            orphans=orphans or ListOrphans(),
            reservations=reservations,
            frontier=frontier,
            island_distance=distance,
            max_spiral_steps=max_steps,
        )

    return _make
