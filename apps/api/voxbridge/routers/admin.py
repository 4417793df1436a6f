"""Aggregate lobby statistics."""
from __future__ import annotations

from fastapi import APIRouter

from ..schemas import admin as admin_schema
from ..services.lobby import lobby

router = APIRouter()


@router.get("/stats", response_model=admin_schema.StatsResponse)
async def stats() -> admin_schema.StatsResponse:
    """Return online, queue and room counts plus lifetime counters."""

    snapshot = lobby.snapshot()
    return admin_schema.StatsResponse(
        online=snapshot.online,
        in_queue=snapshot.queue_length,
        active_rooms=snapshot.rooms,
        uptime=int(snapshot.uptime),
        metrics=snapshot.metrics,
    )
