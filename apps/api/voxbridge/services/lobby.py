"""Coordinator for participants, the matchmaking queue, rooms and signaling.

All shared tables belong to one :class:`Lobby`. Every state transition runs
under a single ``asyncio.Lock`` and never awaits while holding it; outbound
frames are collected in an :class:`Outbox` and delivered after the lock is
released. Connection handlers and the reaper only ever talk to the tables
through the methods below.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from pydantic import ValidationError

from ..core.config import Settings, settings as default_settings
from ..schemas import messages as schemas
from .matchmaking import MatchQueue, apply_preferences, common_interests, sanitize_text
from .metrics import Metrics
from .outbox import Outbox
from .rate_limiter import RateLimiter
from .registry import Connection, ConnectionRegistry, Participant
from .rooms import Room, RoomTable
from .signaling import SignalRouter

logger = logging.getLogger(__name__)

HEARTBEAT_CLOSE_CODE = 4000
SHUTDOWN_CLOSE_CODE = 1001


@dataclass(slots=True)
class LobbySnapshot:
    online: int
    queue_length: int
    rooms: int
    uptime: float
    metrics: dict[str, int]


class Lobby:
    """Serialize every mutation of the registry, queue, rooms and rate limits."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = config or default_settings
        self._clock = clock
        self._wall_clock = wall_clock
        self._started_at = clock()
        self._lock = asyncio.Lock()

        self.registry = ConnectionRegistry(clock=clock)
        self.queue = MatchQueue(fallback_after=self.settings.match_fallback_after, clock=clock)
        self.rooms = RoomTable(clock=clock)
        self.rate_limiter = RateLimiter(self.settings.rate_limits, clock=clock)
        self.router = SignalRouter(
            self.rooms,
            negotiation_timeout=self.settings.negotiation_timeout,
            clock=clock,
        )
        self.metrics = Metrics()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Outbox]:
        outbox = Outbox()
        async with self._lock:
            yield outbox
        outbox.flush()

    # Connection lifecycle

    async def connect(self, connection: Connection) -> Participant:
        async with self._transaction() as outbox:
            participant = self.registry.register(connection)
            self.metrics.total_connections += 1
            outbox.send(
                participant,
                schemas.OutboundType.CONNECTED,
                schemas.ConnectedPayload(
                    id=participant.id,
                    alias=participant.alias,
                    online_count=len(self.registry),
                ),
            )
        logger.info("Connected: %s (%d online)", participant.alias, len(self.registry))
        return participant

    async def disconnect(self, participant_id: str) -> Optional[Participant]:
        """Remove a participant and release its queue slot and room. Idempotent."""

        async with self._transaction() as outbox:
            participant = self._drop(participant_id, outbox)
        if participant is not None:
            logger.info("Disconnected: %s (%d online)", participant.alias, len(self.registry))
        return participant

    # Inbound messages

    async def handle(self, participant_id: str, raw: str | bytes | dict[str, Any]) -> None:
        """Process one inbound frame; malformed, limited or stale input is dropped."""

        async with self._transaction() as outbox:
            participant = self.registry.touch(participant_id)
            if participant is None:
                return
            try:
                if isinstance(raw, dict):
                    frame = schemas.Envelope.model_validate(raw)
                else:
                    frame = schemas.Envelope.model_validate_json(raw)
            except ValidationError:
                logger.debug("Dropped unparseable frame from %s", participant.alias)
                return
            if not self.rate_limiter.allow(participant.id, frame.type):
                logger.debug("Rate limited %s from %s", frame.type, participant.alias)
                return
            if frame.type in schemas.SIGNAL_TYPES:
                self.router.relay(participant, frame.type, frame.payload, outbox)
                return
            try:
                message = schemas.parse_inbound(frame)
            except ValidationError:
                logger.debug("Dropped malformed %s from %s", frame.type, participant.alias)
                return
            self._dispatch(participant, message, outbox)

    def _dispatch(self, participant: Participant, message: Any, outbox: Outbox) -> None:
        if isinstance(message, schemas.JoinQueueMessage):
            self._join_queue(participant, message.payload, outbox)
        elif isinstance(message, schemas.LeaveQueueMessage):
            if self.queue.leave(participant.id):
                outbox.send(participant, schemas.OutboundType.QUEUE_LEFT)
        elif isinstance(message, schemas.LeaveRoomMessage):
            self._leave_room(participant, outbox)
        elif isinstance(message, schemas.ChatMessage):
            self._relay_chat(participant, message.payload.text, outbox)
        elif isinstance(message, schemas.TypingMessage):
            partner = self._partner_of(participant)
            if partner is not None:
                outbox.send(
                    partner,
                    schemas.OutboundType.TYPING,
                    schemas.TypingOutPayload(is_typing=message.payload.is_typing),
                )
        elif isinstance(message, schemas.LivenessPingMessage):
            outbox.send(
                participant,
                schemas.OutboundType.LIVENESS_PONG,
                schemas.LivenessPongPayload(online_count=len(self.registry), queue_length=len(self.queue)),
            )
        elif isinstance(message, schemas.IceFailureMessage):
            self.metrics.ice_failures += 1
            logger.info("ICE failure reported by %s", participant.alias)

    def _join_queue(
        self,
        participant: Participant,
        payload: schemas.JoinQueuePayload | None,
        outbox: Outbox,
    ) -> None:
        if participant.room_id is not None:
            return
        if payload is not None:
            apply_preferences(
                participant,
                payload,
                max_interests=self.settings.max_interests,
                max_text_length=self.settings.max_text_length,
            )
        result = self.queue.join(participant)
        if result.partner is not None and result.joiner_initiates:
            self._open_room(participant, result.partner, outbox)
        elif result.partner is not None:
            self._open_room(result.partner, participant, outbox)
        elif result.position is not None:
            outbox.send(
                participant,
                schemas.OutboundType.QUEUE_JOINED,
                schemas.QueueJoinedPayload(position=result.position),
            )

    def _open_room(self, initiator: Participant, responder: Participant, outbox: Outbox) -> Room:
        room = self.rooms.create(initiator, responder)
        self.metrics.total_matches += 1
        shared = common_interests(initiator.interests, responder.interests)
        for me, partner in ((initiator, responder), (responder, initiator)):
            outbox.send(
                me,
                schemas.OutboundType.MATCHED,
                schemas.MatchedPayload(
                    room_id=room.id,
                    partner_alias=partner.alias,
                    partner_language=partner.native_language,
                    partner_country=partner.country,
                    common_interests=shared,
                    is_initiator=me is initiator,
                ),
            )
        logger.info("Match #%d: %s <-> %s", self.metrics.total_matches, initiator.alias, responder.alias)
        return room

    def _leave_room(self, participant: Participant, outbox: Outbox) -> None:
        partner = self.rooms.leave(participant)
        if partner is not None:
            outbox.send(partner, schemas.OutboundType.PARTNER_LEFT)

    def _partner_of(self, participant: Participant) -> Optional[Participant]:
        room = self.rooms.room_of(participant)
        if room is None:
            return None
        return room.partner_of(participant.id)

    def _relay_chat(self, participant: Participant, text: str, outbox: Outbox) -> None:
        partner = self._partner_of(participant)
        if partner is None:
            return
        clean = sanitize_text(text, self.settings.max_text_length)
        if not clean:
            return
        outbox.send(
            partner,
            schemas.OutboundType.CHAT_MESSAGE,
            schemas.ChatMessageOutPayload(
                sender=participant.alias,
                text=clean,
                timestamp=int(self._wall_clock() * 1000),
            ),
        )

    def _drop(self, participant_id: str, outbox: Outbox) -> Optional[Participant]:
        participant = self.registry.unregister(participant_id)
        if participant is None:
            return None
        self.queue.leave(participant.id)
        self._leave_room(participant, outbox)
        self.rate_limiter.forget(participant.id)
        return participant

    # Periodic sweeps

    async def sweep_rate_limits(self) -> int:
        async with self._transaction():
            return self.rate_limiter.sweep(self.settings.rate_limit_idle)

    async def expire_rooms(self) -> list[Room]:
        async with self._transaction() as outbox:
            expired = self.rooms.expired(self.settings.room_max_age)
            for room in expired:
                self.rooms.close(room.id)
                for member in room.members:
                    outbox.send(member, schemas.OutboundType.ROOM_EXPIRED)
            self.metrics.rooms_expired += len(expired)
        for room in expired:
            logger.info("Room expired: %s", room.id)
        return expired

    async def expire_queue(self) -> list[Participant]:
        """Pair long-waiting entries, then time out whoever is still waiting too long."""

        async with self._transaction() as outbox:
            for initiator, responder in self.queue.pair_waiting():
                self._open_room(initiator, responder, outbox)
            expired = self.queue.expire(self.settings.queue_timeout)
            for participant in expired:
                outbox.send(participant, schemas.OutboundType.QUEUE_TIMEOUT)
            self.metrics.queue_timeouts += len(expired)
        for participant in expired:
            logger.info("Queue timeout: %s", participant.alias)
        return expired

    async def evict_idle(self) -> list[Participant]:
        """Drop participants that missed the heartbeat deadline and close their sockets."""

        async with self._transaction() as outbox:
            evicted = []
            for participant in self.registry.idle(self.settings.heartbeat_timeout):
                if self._drop(participant.id, outbox) is not None:
                    evicted.append(participant)
            self.metrics.heartbeat_evictions += len(evicted)
        for participant in evicted:
            logger.info("Heartbeat timeout: %s", participant.alias)
        await asyncio.gather(
            *(participant.connection.close(HEARTBEAT_CLOSE_CODE) for participant in evicted),
            return_exceptions=True,
        )
        return evicted

    async def expire_negotiations(self) -> list[Participant]:
        async with self._transaction() as outbox:
            timed_out = self.router.expire_negotiations(self.registry, outbox)
            self.metrics.negotiation_timeouts += len(timed_out)
        for participant in timed_out:
            logger.info("Negotiation timeout for %s", participant.alias)
        return timed_out

    # Introspection and shutdown

    def snapshot(self) -> LobbySnapshot:
        return LobbySnapshot(
            online=len(self.registry),
            queue_length=len(self.queue),
            rooms=len(self.rooms),
            uptime=self._clock() - self._started_at,
            metrics=self.metrics.as_dict(),
        )

    async def shutdown(self) -> None:
        """Close every open connection; the registry empties as handlers exit."""

        async with self._lock:
            connections = [participant.connection for participant in self.registry]
        logger.info("Closing %d connections", len(connections))
        await asyncio.gather(
            *(connection.close(SHUTDOWN_CLOSE_CODE) for connection in connections),
            return_exceptions=True,
        )


lobby = Lobby()
