"""Deferred delivery of outbound frames.

State transitions run under the lobby lock and only record what has to be sent;
the frames are handed to connections after the lock is released.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from ..schemas.messages import OutboundType, envelope
from .registry import Participant

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Outbox:
    items: list[tuple[Participant, dict[str, Any]]] = field(default_factory=list)

    def send(
        self,
        participant: Participant,
        kind: OutboundType,
        payload: BaseModel | dict[str, Any] | None = None,
    ) -> None:
        self.items.append((participant, envelope(kind, payload)))

    def forward(self, participant: Participant, kind: OutboundType, payload: dict[str, Any]) -> None:
        """Queue ``payload`` for ``participant`` exactly as it was received."""

        self.items.append((participant, {"type": kind.value, "payload": payload}))

    def flush(self) -> int:
        """Deliver everything queued so far; return how many frames were accepted."""

        items, self.items = self.items, []
        delivered = 0
        for participant, message in items:
            if participant.send(message):
                delivered += 1
            else:
                logger.debug("Dropped %s for %s: connection closed", message["type"], participant.alias)
        return delivered

    def __len__(self) -> int:
        return len(self.items)
