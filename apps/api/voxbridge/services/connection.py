"""WebSocket connection wrapper with a single writer per participant."""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)

_STOP = object()
WRITER_DRAIN_TIMEOUT = 5.0


class WebSocketPeer:
    """Queue outbound frames for one socket and write them from a dedicated task.

    ``deliver`` never blocks: it refuses frames once the peer is closed or the
    buffer is full, which keeps lobby transitions free of network I/O and keeps
    frames to a given participant in the order they were produced.
    """

    def __init__(self, websocket: WebSocket, max_pending: int = 256) -> None:
        self._ws = websocket
        self._outbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_pending)
        self._writer: asyncio.Task[None] | None = None
        self._closed = False
        self._close_requested = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def deliver(self, message: dict[str, Any]) -> bool:
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbound buffer full, dropping %s", message.get("type"))
            return False
        return True

    async def close(self, code: int = 1000) -> None:
        if self._close_requested:
            return
        self._close_requested = True
        self._closed = True
        if self._writer is not None:
            try:
                self._outbox.put_nowait(_STOP)
            except asyncio.QueueFull:
                self._writer.cancel()
            _, pending = await asyncio.wait({self._writer}, timeout=WRITER_DRAIN_TIMEOUT)
            for task in pending:
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        if self._ws.application_state == WebSocketState.CONNECTED:
            with suppress(RuntimeError, WebSocketDisconnect):
                await self._ws.close(code=code)

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            if message is _STOP:
                return
            try:
                await self._ws.send_json(message)
            except (RuntimeError, OSError, WebSocketDisconnect) as exc:
                logger.debug("Send failed, marking peer closed: %s", exc)
                self._closed = True
                return
