"""Matchmaking queue and the language pairing policy.

Matching is a greedy single pass over the waiting list. Each candidate is
ranked by the first rule it satisfies:

1. complementary: each side speaks what the other wants to practise;
2. shared target: both practise the same language;
3. aged fallback: the candidate has waited longer than the fallback threshold.

The earliest candidate of the best rank wins. Closed connections found during
the scan are culled from the queue.
"""
from __future__ import annotations

import enum
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from ..schemas.messages import JoinQueuePayload
from .registry import DEFAULT_COUNTRY, DEFAULT_NATIVE_LANGUAGE, DEFAULT_TARGET_LANGUAGE, Participant

_MARKUP_CHARS = re.compile(r"[<>]")


class MatchRank(enum.IntEnum):
    COMPLEMENTARY = 1
    SHARED_TARGET = 2
    AGED_FALLBACK = 3


@dataclass(slots=True)
class QueueEntry:
    participant: Participant
    joined_at: float


@dataclass(slots=True)
class JoinResult:
    """Outcome of :meth:`MatchQueue.join`.

    Exactly one of ``partner`` (the already-queued participant to pair with) or
    ``position`` (1-based place in the queue) is set, unless the join was
    rejected because the participant is already in a room. ``joiner_initiates``
    is set when the joiner was already queued before its partner.
    """

    partner: Optional[Participant] = None
    rank: Optional[MatchRank] = None
    position: Optional[int] = None
    joiner_initiates: bool = False

    @property
    def rejected(self) -> bool:
        return self.partner is None and self.position is None


def sanitize_text(value: object, limit: int) -> str:
    if not isinstance(value, str):
        return ""
    return _MARKUP_CHARS.sub("", value[:limit]).strip()


def apply_preferences(
    participant: Participant,
    payload: JoinQueuePayload,
    *,
    max_interests: int,
    max_text_length: int,
) -> None:
    """Copy sanitised preferences from a ``join_queue`` payload onto the participant."""

    participant.native_language = (
        sanitize_text(payload.native_language, max_text_length) or DEFAULT_NATIVE_LANGUAGE
    )
    participant.target_language = (
        sanitize_text(payload.target_language, max_text_length) or DEFAULT_TARGET_LANGUAGE
    )
    participant.country = sanitize_text(payload.country, max_text_length) or DEFAULT_COUNTRY

    interests: list[str] = []
    for raw in payload.interests[:max_interests]:
        tag = sanitize_text(raw, max_text_length)
        if tag and tag not in interests:
            interests.append(tag)
    participant.interests = interests


def rank_candidate(
    joiner: Participant,
    candidate: QueueEntry,
    now: float,
    fallback_after: float,
) -> Optional[MatchRank]:
    other = candidate.participant
    if (
        other.native_language == joiner.target_language
        and joiner.native_language == other.target_language
    ):
        return MatchRank.COMPLEMENTARY
    if joiner.target_language == other.target_language:
        return MatchRank.SHARED_TARGET
    if now - candidate.joined_at > fallback_after:
        return MatchRank.AGED_FALLBACK
    return None


def common_interests(first: Sequence[str], second: Iterable[str]) -> list[str]:
    """Interests both sides declared, in the order of ``first``."""

    other = set(second)
    return [tag for tag in first if tag in other]


class MatchQueue:
    """Ordered waiting list; a participant appears in it at most once."""

    def __init__(self, fallback_after: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._fallback_after = fallback_after
        self._clock = clock
        self._entries: list[QueueEntry] = []

    def join(self, participant: Participant) -> JoinResult:
        """Pair ``participant`` with the best waiting candidate or enqueue it.

        Preferences must already be applied. A participant that is in a room is
        rejected without touching the queue.
        """

        if participant.room_id is not None:
            return JoinResult()

        now = self._clock()
        match = self._best_candidate(participant, now)
        if match is not None:
            entry, rank = match
            self._entries.remove(entry)
            own = self._remove(participant.id)
            return JoinResult(
                partner=entry.participant,
                rank=rank,
                joiner_initiates=own is not None and own.joined_at < entry.joined_at,
            )

        position = self.position(participant.id)
        if position is None:
            self._entries.append(QueueEntry(participant=participant, joined_at=now))
            position = len(self._entries)
        return JoinResult(position=position)

    def leave(self, participant_id: str) -> bool:
        """Remove ``participant_id`` if queued; return whether anything was removed."""

        return self._remove(participant_id) is not None

    def pair_waiting(self) -> list[tuple[Participant, Participant]]:
        """Pair entries that have outlived the fallback threshold with anyone else waiting.

        Returns ``(initiator, responder)`` tuples; the initiator is the side that
        has been queued longer.
        """

        now = self._clock()
        self._cull_closed()
        pairs: list[tuple[Participant, Participant]] = []
        index = 0
        while index < len(self._entries):
            entry = self._entries[index]
            if now - entry.joined_at <= self._fallback_after:
                index += 1
                continue
            others = [other for other in self._entries if other is not entry]
            if not others:
                break
            partner = others[0]
            self._entries.remove(entry)
            self._entries.remove(partner)
            first, second = sorted((entry, partner), key=lambda item: item.joined_at)
            pairs.append((first.participant, second.participant))
        return pairs

    def expire(self, max_wait: float) -> list[Participant]:
        """Drop entries that waited longer than ``max_wait`` seconds and return them."""

        now = self._clock()
        expired = [entry for entry in self._entries if now - entry.joined_at > max_wait]
        for entry in expired:
            self._entries.remove(entry)
        return [entry.participant for entry in expired]

    def position(self, participant_id: str) -> Optional[int]:
        for index, entry in enumerate(self._entries, start=1):
            if entry.participant.id == participant_id:
                return index
        return None

    def participant_ids(self) -> list[str]:
        return [entry.participant.id for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, participant_id: object) -> bool:
        return any(entry.participant.id == participant_id for entry in self._entries)

    def _best_candidate(self, joiner: Participant, now: float) -> Optional[tuple[QueueEntry, MatchRank]]:
        best: Optional[tuple[QueueEntry, MatchRank]] = None
        for entry in list(self._entries):
            candidate = entry.participant
            if candidate.id == joiner.id:
                continue
            if not candidate.is_open:
                self._entries.remove(entry)
                continue
            rank = rank_candidate(joiner, entry, now, self._fallback_after)
            if rank is None:
                continue
            if best is None or rank < best[1]:
                best = (entry, rank)
                if rank is MatchRank.COMPLEMENTARY:
                    break
        return best

    def _cull_closed(self) -> None:
        self._entries = [entry for entry in self._entries if entry.participant.is_open]

    def _remove(self, participant_id: str) -> Optional[QueueEntry]:
        for entry in self._entries:
            if entry.participant.id == participant_id:
                self._entries.remove(entry)
                return entry
        return None
