"""ICE credential issuance and the participant signaling socket.

Liveness is client-driven: the server sends no probes of its own. Any inbound
frame, ``liveness_ping`` included, refreshes the participant's last-seen time,
and the heartbeat sweep evicts participants that stay silent past the timeout.
Uvicorn's protocol-level ping still drops sockets whose TCP peer is gone.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..core.config import settings
from ..schemas.rtc import IceServerResponse
from ..services import rtc as rtc_service
from ..services.connection import WebSocketPeer
from ..services.lobby import lobby

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/turn-credentials",
    response_model=list[IceServerResponse],
    response_model_exclude_none=True,
)
async def turn_credentials() -> list[IceServerResponse]:
    """Return ICE servers, including a short-lived TURN credential when configured."""

    servers = rtc_service.issue_ice_servers(settings)
    return [
        IceServerResponse(urls=server.urls, username=server.username, credential=server.credential)
        for server in servers
    ]


@router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket) -> None:
    """One participant connection: matchmaking, chat and signal relay."""

    await websocket.accept()

    peer = WebSocketPeer(websocket, max_pending=lobby.settings.outbound_queue_size)
    peer.start()
    participant = await lobby.connect(peer)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            await lobby.handle(participant.id, data)
    except WebSocketDisconnect:
        pass
    except RuntimeError as exc:
        # receive() after the server already closed the socket (eviction, shutdown)
        logger.debug("Socket for %s closed: %s", participant.alias, exc)
    finally:
        await lobby.disconnect(participant.id)
        await peer.close()
