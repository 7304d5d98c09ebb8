from __future__ import annotations

import logging
import time
from typing import Dict, List

from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from skygrid.api.models import (
    AllocationResponse,
    CellModel,
    IslandClaim,
    IslandEntry,
    IslandRequest,
    ReservationEntry,
)
from skygrid.common.config import settings
from skygrid.common.types import AllocationRequest
from skygrid.engine.allocator import IslandAllocator, SpiralExhaustedError
from skygrid.engine.frontier import FrontierStore
from skygrid.engine.geometry import is_aligned
from skygrid.engine.reservations import ReservationTable
from skygrid.engine.scheduler import ThreadScheduler
from skygrid.engine.world import IslandWorld, OrphanPool
from skygrid.persist.sqlite import SqlitePersistence

app = FastAPI(title="skygrid")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)

persistence: SqlitePersistence | None = None
scheduler: ThreadScheduler | None = None
orphan_pool: OrphanPool | None = None
allocator: IslandAllocator | None = None


def _get_allocator() -> IslandAllocator:
    assert allocator is not None
    return allocator


def _get_persistence() -> SqlitePersistence:
    assert persistence is not None
    return persistence


def _get_orphans() -> OrphanPool:
    assert orphan_pool is not None
    return orphan_pool


def _check_api_key(provided: str | None) -> None:
    if settings.api_key and provided != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _check_aligned(x: int, z: int) -> None:
    if not is_aligned((x, z), settings.island_distance):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cell must be a multiple of {settings.island_distance}",
        )


@app.on_event("startup")
async def _startup() -> None:
    global persistence, scheduler, orphan_pool, allocator
    persistence = SqlitePersistence(settings.db_path)
    scheduler = ThreadScheduler()
    orphan_pool = OrphanPool(persistence)
    allocator = IslandAllocator(
        oracle=IslandWorld(persistence, settings.sky_worlds, settings.spawn_radius),
        orphans=orphan_pool,
        reservations=ReservationTable(scheduler, settings.reservation_timeout_seconds),
        frontier=FrontierStore(
            persistence,
            scheduler,
            namespace=settings.frontier_namespace,
            legacy_namespace=settings.legacy_namespace,
        ),
        island_distance=settings.island_distance,
        max_spiral_steps=settings.spiral_max_steps,
    )
    logger.info("Island allocator ready (distance=%s)", settings.island_distance)


@app.on_event("shutdown")
async def _shutdown() -> None:
    if scheduler is not None:
        scheduler.close()
    if persistence is not None:
        persistence.close()


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/islands/next", response_model=AllocationResponse)
def next_island(req: IslandRequest, x_api_key: str | None = Header(default=None)) -> AllocationResponse:
    _check_api_key(x_api_key)
    messages: List[str] = []
    request = AllocationRequest(
        actor_id=req.actor_id,
        world=req.world,
        x=req.x,
        z=req.z,
        yaw=req.yaw,
        notify=messages.append,
    )
    try:
        allocation = _get_allocator().next_island_location(request)
    except SpiralExhaustedError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    x, z = allocation.cell
    return AllocationResponse(x=x, z=z, reason=allocation.reason.value, messages=messages)


@app.post("/islands/confirm")
def confirm_island(claim: IslandClaim, x_api_key: str | None = Header(default=None)) -> Dict[str, str]:
    _check_api_key(x_api_key)
    _check_aligned(claim.x, claim.z)
    cell = (claim.x, claim.z)
    if _get_allocator().oracle.is_in_protected_region(cell):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cell is inside the spawn region"
        )
    if not _get_persistence().add_island(cell, claim.owner):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Island already exists")
    _get_allocator().reservations.release(cell)
    return {"status": "ok"}


@app.post("/islands/abandon")
def abandon_island(cell: CellModel, x_api_key: str | None = Header(default=None)) -> Dict[str, str]:
    _check_api_key(x_api_key)
    if not _get_orphans().abandon((cell.x, cell.z)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown island")
    return {"status": "ok"}


@app.get("/islands", response_model=List[IslandEntry])
def list_islands(limit: int = 100, x_api_key: str | None = Header(default=None)) -> List[IslandEntry]:
    _check_api_key(x_api_key)
    rows = _get_persistence().list_islands(limit=max(1, min(limit, 1000)))
    return [IslandEntry(**row) for row in rows]


@app.get("/islands/frontier", response_model=CellModel)
def frontier(x_api_key: str | None = Header(default=None)) -> CellModel:
    _check_api_key(x_api_key)
    x, z = _get_allocator().frontier
    return CellModel(x=x, z=z)


@app.get("/islands/reservations", response_model=List[ReservationEntry])
def reservations(x_api_key: str | None = Header(default=None)) -> List[ReservationEntry]:
    _check_api_key(x_api_key)
    now = time.monotonic()
    entries = _get_allocator().reservations.reserved_cells()
    return [
        ReservationEntry(x=r.cell[0], z=r.cell[1], age_seconds=round(now - r.reserved_at, 3))
        for r in sorted(entries, key=lambda r: r.reserved_at)
    ]
