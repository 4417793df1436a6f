"""FastAPI application for the anonymous matchmaking and signaling service."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .core.config import settings
from .routers import admin as admin_router
from .routers import rtc as rtc_router
from .schemas import admin as admin_schema
from .services.lobby import lobby
from .services.reaper import Reaper

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

reaper = Reaper(lobby)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    reaper.start()
    logger.info(
        "Signaling up: heartbeat=%ss room_max_age=%ss negotiation_timeout=%ss",
        settings.heartbeat_timeout,
        settings.room_max_age,
        settings.negotiation_timeout,
    )
    try:
        yield
    finally:
        logger.info("Shutting down, closing open connections")
        await reaper.stop()
        await lobby.shutdown()


app = FastAPI(title="Vox Bridge Signaling API", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(rtc_router.router, prefix="/api/rtc", tags=["rtc"])
app.include_router(admin_router.router, prefix="/api", tags=["admin"])


@app.get("/", response_model=admin_schema.RootResponse, tags=["meta"])
async def index() -> admin_schema.RootResponse:
    """Identify the service and report how many participants are online."""

    return admin_schema.RootResponse(message="Vox Bridge signaling", online=lobby.snapshot().online)


@app.get("/api/health", response_model=admin_schema.HealthResponse, tags=["meta"])
async def health() -> admin_schema.HealthResponse:
    """Liveness probe with table sizes and lifetime counters."""

    snapshot = lobby.snapshot()
    return admin_schema.HealthResponse(
        timestamp=int(time.time() * 1000),
        users=snapshot.online,
        queue=snapshot.queue_length,
        rooms=snapshot.rooms,
        uptime=snapshot.uptime,
        metrics=snapshot.metrics,
    )


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)
