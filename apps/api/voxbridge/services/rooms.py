"""Two-party rooms and their lifecycle."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional
from uuid import uuid4

from .registry import Participant


@dataclass(slots=True, eq=False)
class Room:
    id: str
    initiator: Participant
    responder: Participant
    created_at: float

    @property
    def members(self) -> tuple[Participant, Participant]:
        return (self.initiator, self.responder)

    def partner_of(self, participant_id: str) -> Optional[Participant]:
        if self.initiator.id == participant_id:
            return self.responder
        if self.responder.id == participant_id:
            return self.initiator
        return None


class RoomTable:
    """Rooms keyed by identifier.

    Membership and each participant's ``room_id`` are kept in agreement: a room
    is only ever created or closed through this table, and both update the two
    members together.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._rooms: Dict[str, Room] = {}

    def create(self, initiator: Participant, responder: Participant) -> Room:
        if initiator.id == responder.id:
            raise ValueError("a room needs two distinct participants")
        if initiator.room_id is not None or responder.room_id is not None:
            raise ValueError("participant is already in a room")

        room = Room(id=str(uuid4()), initiator=initiator, responder=responder, created_at=self._clock())
        initiator.room_id = room.id
        responder.room_id = room.id
        self._rooms[room.id] = room
        return room

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if room_id is None:
            return None
        return self._rooms.get(room_id)

    def room_of(self, participant: Participant) -> Optional[Room]:
        room = self.get(participant.room_id)
        if room is None or room.partner_of(participant.id) is None:
            return None
        return room

    def close(self, room_id: str) -> Optional[Room]:
        """Delete the room and detach both members; ``None`` if it was already gone."""

        room = self._rooms.pop(room_id, None)
        if room is None:
            return None
        for member in room.members:
            if member.room_id == room.id:
                member.room_id = None
            member.negotiation_started_at = None
        return room

    def leave(self, participant: Participant) -> Optional[Participant]:
        """Close the participant's room and return the partner left behind.

        Rooms are strictly two-party, so one member leaving always ends the room.
        Idempotent: a participant without a room yields ``None``.
        """

        room = self.room_of(participant)
        if room is None:
            participant.room_id = None
            participant.negotiation_started_at = None
            return None
        partner = room.partner_of(participant.id)
        self.close(room.id)
        return partner

    def expired(self, max_age: float) -> list[Room]:
        now = self._clock()
        return [room for room in self._rooms.values() if now - room.created_at > max_age]

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))
