import tempfile
from pathlib import Path

from skygrid.common.types import AllocationRequest, PlacementReason
from skygrid.engine.allocator import IslandAllocator
from skygrid.engine.frontier import FrontierStore
from skygrid.engine.reservations import ReservationTable
from skygrid.engine.world import IslandWorld, OrphanPool
from skygrid.persist.sqlite import SqlitePersistence


def _request(world="overworld"):
    return AllocationRequest(actor_id="alex", world=world, x=0.0, z=0.0)


def test_island_world_spawn_and_occupancy(persist):
    world = IslandWorld(persist, ["skyworld"], spawn_radius=64)
    assert world.is_in_protected_region((0, 0))
    assert world.is_in_protected_region((64, -64))
    assert not world.is_in_protected_region((128, 0))
    assert world.is_sky_world("skyworld")
    assert not world.is_sky_world("world_nether")

    persist.add_island((128, 0), "alex")
    assert world.is_occupied((128, 0))
    assert not world.is_occupied((0, 128))


def test_abandon_then_reuse_orphan(clock, scheduler):
    with tempfile.TemporaryDirectory() as tmpdir:
        persistence = SqlitePersistence(str(Path(tmpdir) / "world.db"))
        orphans = OrphanPool(persistence)
        allocator = IslandAllocator(
            oracle=IslandWorld(persistence, ["skyworld"], spawn_radius=64),
            orphans=orphans,
            reservations=ReservationTable(scheduler, timeout_seconds=300, clock=clock),
            frontier=FrontierStore(persistence, scheduler),
            island_distance=128,
        )

        first = allocator.next_island_location(_request())
        assert first.cell == (0, 128)
        assert persistence.add_island(first.cell, "alex")
        assert not persistence.add_island(first.cell, "steve")

        second = allocator.next_island_location(_request())
        assert second.cell == (128, 128)
        assert persistence.add_island(second.cell, "steve")

        assert orphans.abandon(first.cell)
        assert not orphans.abandon((1280, 1280))
        assert orphans.count() == 1
        assert not persistence.has_island(first.cell)

        scheduler.advance(301)
        reused = allocator.next_island_location(_request())
        assert reused.cell == (0, 128)
        assert reused.reason is PlacementReason.ORPHAN
        assert orphans.count() == 1
        assert allocator.frontier == (128, 128)

        assert persistence.add_island(reused.cell, "alex")
        assert orphans.count() == 0
        persistence.close()


def test_unconfirmed_orphan_is_offered_again_after_expiry(clock, scheduler):
    with tempfile.TemporaryDirectory() as tmpdir:
        persistence = SqlitePersistence(str(Path(tmpdir) / "world.db"))
        orphans = OrphanPool(persistence)
        allocator = IslandAllocator(
            oracle=IslandWorld(persistence, ["skyworld"], spawn_radius=64),
            orphans=orphans,
            reservations=ReservationTable(scheduler, timeout_seconds=300, clock=clock),
            frontier=FrontierStore(persistence, scheduler),
            island_distance=128,
        )
        assert persistence.add_island((1280, 1280), "alex")
        assert orphans.abandon((1280, 1280))

        first = allocator.next_island_location(_request())
        assert (first.cell, first.reason) == ((1280, 1280), PlacementReason.ORPHAN)

        # still reserved, so the next request expands the spiral instead
        while_reserved = allocator.next_island_location(_request())
        assert while_reserved.reason is PlacementReason.SPIRAL
        assert orphans.count() == 1

        scheduler.advance(301)
        again = allocator.next_island_location(_request())
        assert (again.cell, again.reason) == ((1280, 1280), PlacementReason.ORPHAN)
        persistence.close()


def test_orphan_pool_discards_occupied_entries(persist, make_allocator):
    allocator = make_allocator(oracle=IslandWorld(persist, ["skyworld"], spawn_radius=64))
    pool = OrphanPool(persist)
    persist.add_island((384, 384), "alex")
    persist.add_orphan((384, 384))
    persist.add_orphan((512, 512))
    assert pool.next_orphan(allocator) == (512, 512)
    assert persist.orphans == [(512, 512)]

    allocator.reservations.reserve((512, 512))
    assert pool.next_orphan(allocator) is None
    assert pool.count() == 1


def test_orphan_pool_discards_spawn_entries(persist, make_allocator):
    allocator = make_allocator(oracle=IslandWorld(persist, ["skyworld"], spawn_radius=64))
    pool = OrphanPool(persist)
    persist.add_orphan((0, 0))
    assert pool.next_orphan(allocator) is None
    assert pool.count() == 0
