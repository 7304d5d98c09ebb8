from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class IslandRequest(BaseModel):
    actor_id: str
    world: str
    x: float
    z: float
    yaw: float = 0.0


class CellModel(BaseModel):
    x: int
    z: int


class AllocationResponse(BaseModel):
    x: int
    z: int
    reason: str
    messages: List[str] = Field(default_factory=list)


class IslandClaim(BaseModel):
    x: int
    z: int
    owner: str


class IslandEntry(BaseModel):
    x: int
    z: int
    owner: str
    created_at: int


class ReservationEntry(BaseModel):
    x: int
    z: int
    age_seconds: float
