"""Blind relay of session-negotiation messages between room partners."""
from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Iterable

from pydantic import BaseModel, ValidationError

from ..schemas.messages import CandidatePayload, NegotiationPayload, OutboundType
from .outbox import Outbox
from .registry import Participant
from .rooms import RoomTable

logger = logging.getLogger(__name__)

SIGNAL_PAYLOADS: dict[str, type[BaseModel]] = {
    OutboundType.NEGOTIATION_OFFER.value: NegotiationPayload,
    OutboundType.NEGOTIATION_ANSWER.value: NegotiationPayload,
    OutboundType.CONNECTIVITY_CANDIDATE.value: CandidatePayload,
}


class RelayStatus(str, enum.Enum):
    FORWARDED = "forwarded"
    MALFORMED = "malformed"
    NOT_IN_ROOM = "not_in_room"
    PEER_UNAVAILABLE = "peer_unavailable"


class SignalRouter:
    """Forward offers, answers and candidates to the other member of a room.

    An offer stamps a negotiation marker on its sender; the matching answer clears
    it. Markers older than ``negotiation_timeout`` are reported back to the sender
    by :meth:`expire_negotiations`. A fresh offer overwrites the marker, so a
    room never carries more than one pending offer per direction.
    """

    def __init__(
        self,
        rooms: RoomTable,
        *,
        negotiation_timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rooms = rooms
        self._negotiation_timeout = negotiation_timeout
        self._clock = clock

    def relay(self, sender: Participant, kind: str, payload: Any, outbox: Outbox) -> RelayStatus:
        model = SIGNAL_PAYLOADS.get(kind)
        if model is None or not isinstance(payload, dict):
            return RelayStatus.MALFORMED
        try:
            model.model_validate(payload)
        except ValidationError:
            logger.debug("Invalid %s payload from %s", kind, sender.alias)
            return RelayStatus.MALFORMED

        room = self._rooms.room_of(sender)
        if room is None:
            return RelayStatus.NOT_IN_ROOM
        partner = room.partner_of(sender.id)
        if partner is None:
            return RelayStatus.NOT_IN_ROOM

        if not partner.is_open:
            logger.info("Partner of %s is gone, closing room %s", sender.alias, room.id)
            self._rooms.close(room.id)
            outbox.send(sender, OutboundType.PARTNER_LEFT)
            return RelayStatus.PEER_UNAVAILABLE

        outbound = OutboundType(kind)
        if outbound is OutboundType.NEGOTIATION_OFFER:
            sender.negotiation_started_at = self._clock()
        elif outbound is OutboundType.NEGOTIATION_ANSWER:
            partner.negotiation_started_at = None

        outbox.forward(partner, outbound, payload)
        return RelayStatus.FORWARDED

    def expire_negotiations(self, participants: Iterable[Participant], outbox: Outbox) -> list[Participant]:
        """Notify and clear every sender whose offer went unanswered for too long."""

        now = self._clock()
        timed_out: list[Participant] = []
        for participant in participants:
            started = participant.negotiation_started_at
            if started is None or now - started < self._negotiation_timeout:
                continue
            participant.negotiation_started_at = None
            outbox.send(participant, OutboundType.NEGOTIATION_TIMEOUT)
            timed_out.append(participant)
        return timed_out
