from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

Cell = Tuple[int, int]
Point = Tuple[float, float]


class PlacementReason(str, Enum):
    POSITION = "position"
    FACING = "facing"
    ORPHAN = "orphan"
    SPIRAL = "spiral"


@dataclass(frozen=True)
class AllocationRequest:
    """A request for a new island from an actor standing somewhere in a world."""

    actor_id: str
    world: str
    x: float
    z: float
    yaw: float = 0.0
    notify: Callable[[str], None] | None = None


@dataclass(frozen=True)
class Allocation:
    cell: Cell
    reason: PlacementReason


def cell_name(cell: Cell) -> str:
    x, z = cell
    return f"{x},{z}"
