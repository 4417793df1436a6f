"""In-memory registry of connected participants."""
from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Protocol
from uuid import uuid4

Clock = Callable[[], float]

DEFAULT_NATIVE_LANGUAGE = "pt"
DEFAULT_TARGET_LANGUAGE = "en"
DEFAULT_COUNTRY = "BR"

_ALIAS_ADJECTIVES = ("Swift", "Bright", "Cool", "Wild", "Calm", "Bold", "Wise", "Free", "Quick", "Sharp")
_ALIAS_NOUNS = ("Fox", "Wolf", "Bear", "Eagle", "Lion", "Tiger", "Hawk", "Owl", "Panda", "Falcon")


class Connection(Protocol):
    """Outbound side of a participant connection."""

    @property
    def is_open(self) -> bool: ...

    def deliver(self, message: dict[str, Any]) -> bool: ...

    async def close(self, code: int = 1000) -> None: ...


def generate_alias(rng: random.Random | None = None) -> str:
    """Return a readable, not necessarily unique, display alias like ``CalmOwl417``."""

    rng = rng or random
    return f"{rng.choice(_ALIAS_ADJECTIVES)}{rng.choice(_ALIAS_NOUNS)}{rng.randrange(1000)}"


@dataclass(slots=True, eq=False)
class Participant:
    """One live connection and the preferences it declared."""

    id: str
    connection: Connection
    alias: str
    connected_at: float
    last_seen: float
    native_language: str = DEFAULT_NATIVE_LANGUAGE
    target_language: str = DEFAULT_TARGET_LANGUAGE
    interests: list[str] = field(default_factory=list)
    country: str = DEFAULT_COUNTRY
    room_id: Optional[str] = None
    negotiation_started_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.connection.is_open

    def send(self, message: dict[str, Any]) -> bool:
        return self.connection.deliver(message)


class ConnectionRegistry:
    """Live participant records keyed by identifier.

    Unknown identifiers are benign everywhere: they race legitimately with
    disconnect handling, so lookups return ``None`` and removals are no-ops.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._participants: Dict[str, Participant] = {}

    def register(self, connection: Connection, *, alias: str | None = None) -> Participant:
        now = self._clock()
        participant = Participant(
            id=str(uuid4()),
            connection=connection,
            alias=alias or generate_alias(),
            connected_at=now,
            last_seen=now,
        )
        self._participants[participant.id] = participant
        return participant

    def get(self, participant_id: str) -> Optional[Participant]:
        return self._participants.get(participant_id)

    def touch(self, participant_id: str) -> Optional[Participant]:
        participant = self._participants.get(participant_id)
        if participant is not None:
            participant.last_seen = self._clock()
        return participant

    def unregister(self, participant_id: str) -> Optional[Participant]:
        return self._participants.pop(participant_id, None)

    def idle(self, timeout: float) -> list[Participant]:
        """Return participants whose last activity is older than ``timeout`` seconds."""

        now = self._clock()
        return [p for p in self._participants.values() if now - p.last_seen > timeout]

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self._participants.values()))
