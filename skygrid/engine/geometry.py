from __future__ import annotations

import math

from skygrid.common.types import Cell, Point

CARDINAL_DIRECTIONS = (
    "South",
    "South West",
    "West",
    "North West",
    "North",
    "North East",
    "East",
    "South East",
)


def align(value: float, distance: int) -> int:
    """Round ``value`` to the nearest multiple of ``distance``.

    Ties go toward zero and the result keeps the sign of the input, so
    ``align(50, 100) == 0`` and ``align(-51, 100) == -100``.
    """
    magnitude = abs(value)
    steps = int(magnitude // distance)
    if (magnitude - steps * distance) * 2 > distance:
        steps += 1
    aligned = steps * distance
    return aligned if value >= 0 else -aligned


def align_cell(x: float, z: float, distance: int) -> Cell:
    return (align(x, distance), align(z, distance))


def is_aligned(cell: Cell, distance: int) -> bool:
    x, z = cell
    return x % distance == 0 and z % distance == 0


def spiral_next(cell: Cell, distance: int) -> Cell:
    """Return the cell after ``cell`` in the outward diagonal ring walk.

    The walk depends only on the current cell, so it can be resumed from any
    aligned cell. The diagonals ``x == z`` and ``x == -z`` split the plane
    into four quadrants; each quadrant moves along one axis::

        -x < z, x < z   : +x
        -x >= z, x < z  : +z
        -x >= z, x > z  : -x
        -x < z, x > z   : -z

    On the ``x == z`` diagonal the walk goes up (+z) at or below the origin
    and down (-z) above it, which steps into the next ring.
    """
    x, z = align_cell(cell[0], cell[1], distance)
    if x < z:
        if -x < z:
            x += distance
        else:
            z += distance
    elif x > z:
        if -x >= z:
            x -= distance
        else:
            z -= distance
    else:
        if x <= 0:
            z += distance
        else:
            z -= distance
    return (x, z)


def facing_vector(yaw: float) -> Point:
    """Horizontal unit vector for a yaw in degrees (0 faces +z, 90 faces -x)."""
    rad = math.radians(yaw)
    return (-math.sin(rad), math.cos(rad))


def step_towards(cell: Cell, yaw: float, distance: int) -> Cell:
    dx, dz = facing_vector(yaw)
    x, z = cell
    return align_cell(x + dx * distance, z + dz * distance, distance)


def cardinal_direction(yaw: float) -> str:
    index = int(((yaw % 360) + 22.5) // 45) % len(CARDINAL_DIRECTIONS)
    return CARDINAL_DIRECTIONS[index]
