"""Schemas for the health and stats endpoints."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RootResponse(BaseModel):
    status: str = "ok"
    message: str
    online: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: int = Field(..., description="Unix time in milliseconds")
    users: int = Field(..., ge=0)
    queue: int = Field(..., ge=0)
    rooms: int = Field(..., ge=0)
    uptime: float = Field(..., ge=0, description="Seconds since the lobby started")
    metrics: dict[str, int]


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    online: int = Field(..., ge=0)
    in_queue: int = Field(..., ge=0, serialization_alias="inQueue")
    active_rooms: int = Field(..., ge=0, serialization_alias="activeRooms")
    uptime: int = Field(..., ge=0)
    metrics: dict[str, int]
