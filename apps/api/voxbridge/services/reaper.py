"""Periodic background sweeps over the lobby tables."""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable

from .lobby import Lobby

logger = logging.getLogger(__name__)

Sweep = Callable[[], Awaitable[Any]]


class Reaper:
    """Run each time-based cleanup on its own fixed interval.

    A sweep that raises is logged and tried again on the next tick; nothing a
    sweep does can stop the other loops.
    """

    def __init__(self, lobby: Lobby) -> None:
        self._lobby = lobby
        self._tasks: list[asyncio.Task[None]] = []

    def schedule(self) -> list[tuple[str, float, Sweep]]:
        config = self._lobby.settings
        return [
            ("rate-limits", config.rate_limit_sweep_interval, self._lobby.sweep_rate_limits),
            ("rooms", config.room_sweep_interval, self._lobby.expire_rooms),
            ("queue", config.queue_sweep_interval, self._lobby.expire_queue),
            ("heartbeat", config.heartbeat_sweep_interval, self._lobby.evict_idle),
            ("negotiations", config.negotiation_sweep_interval, self._lobby.expire_negotiations),
        ]

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._every(name, interval, sweep), name=f"reaper-{name}")
            for name, interval, sweep in self.schedule()
        ]
        logger.info("Reaper started with %d sweeps", len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def _every(self, name: str, interval: float, sweep: Sweep) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await sweep()
            except Exception:  # noqa: BLE001 - a failed sweep retries on the next tick
                logger.exception("Reaper sweep %s failed", name)
