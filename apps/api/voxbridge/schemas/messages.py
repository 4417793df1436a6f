"""Wire contracts for the participant WebSocket connection.

Every frame is a JSON object ``{"type": str, "payload": object}``. Inbound
frames are parsed in two steps: :class:`Envelope` recovers the kind and the raw
payload (used for rate limiting and verbatim forwarding), then
:data:`inbound_adapter` validates the frame against the closed union of known
kinds. Anything that fails either step is malformed input and gets dropped.
"""
from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class InboundType(str, enum.Enum):
    JOIN_QUEUE = "join_queue"
    LEAVE_QUEUE = "leave_queue"
    LEAVE_ROOM = "leave_room"
    CHAT_MESSAGE = "chat_message"
    TYPING = "typing"
    NEGOTIATION_OFFER = "negotiation_offer"
    NEGOTIATION_ANSWER = "negotiation_answer"
    CONNECTIVITY_CANDIDATE = "connectivity_candidate"
    LIVENESS_PING = "liveness_ping"
    ICE_FAILURE = "ice_failure"


class OutboundType(str, enum.Enum):
    CONNECTED = "connected"
    QUEUE_JOINED = "queue_joined"
    QUEUE_LEFT = "queue_left"
    QUEUE_TIMEOUT = "queue_timeout"
    MATCHED = "matched"
    CHAT_MESSAGE = "chat_message"
    TYPING = "typing"
    PARTNER_LEFT = "partner_left"
    ROOM_EXPIRED = "room_expired"
    NEGOTIATION_OFFER = "negotiation_offer"
    NEGOTIATION_ANSWER = "negotiation_answer"
    CONNECTIVITY_CANDIDATE = "connectivity_candidate"
    NEGOTIATION_TIMEOUT = "negotiation_timeout"
    LIVENESS_PONG = "liveness_pong"


SIGNAL_TYPES = frozenset(
    {
        InboundType.NEGOTIATION_OFFER.value,
        InboundType.NEGOTIATION_ANSWER.value,
        InboundType.CONNECTIVITY_CANDIDATE.value,
    }
)


class Envelope(BaseModel):
    """Outer frame shape shared by every inbound message."""

    type: str = Field(..., min_length=1)
    payload: dict[str, Any] | None = None


# Inbound payloads


class JoinQueuePayload(BaseModel):
    """Preferences sent with ``join_queue``; sanitised by the matchmaking queue."""

    native_language: str | None = Field(
        default=None, validation_alias=AliasChoices("native_language", "nativeLanguage")
    )
    target_language: str | None = Field(
        default=None, validation_alias=AliasChoices("target_language", "targetLanguage")
    )
    interests: list[Any] = Field(default_factory=list)
    country: str | None = None

    @field_validator("native_language", "target_language", "country", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("interests", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []


class ChatMessagePayload(BaseModel):
    text: str


class TypingPayload(BaseModel):
    is_typing: bool = Field(default=False, validation_alias=AliasChoices("isTyping", "is_typing"))


class SessionDescription(BaseModel):
    """Opaque session descriptor; only its shape is checked."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    sdp: str = Field(..., min_length=1)


class NegotiationPayload(BaseModel):
    descriptor: SessionDescription


class CandidatePayload(BaseModel):
    candidate: dict[str, Any] = Field(..., min_length=1)


# Inbound messages


class JoinQueueMessage(BaseModel):
    type: Literal["join_queue"]
    payload: JoinQueuePayload | None = None


class LeaveQueueMessage(BaseModel):
    type: Literal["leave_queue"]
    payload: dict[str, Any] | None = None


class LeaveRoomMessage(BaseModel):
    type: Literal["leave_room"]
    payload: dict[str, Any] | None = None


class ChatMessage(BaseModel):
    type: Literal["chat_message"]
    payload: ChatMessagePayload


class TypingMessage(BaseModel):
    type: Literal["typing"]
    payload: TypingPayload = Field(default_factory=TypingPayload)


class NegotiationOfferMessage(BaseModel):
    type: Literal["negotiation_offer"]
    payload: NegotiationPayload


class NegotiationAnswerMessage(BaseModel):
    type: Literal["negotiation_answer"]
    payload: NegotiationPayload


class ConnectivityCandidateMessage(BaseModel):
    type: Literal["connectivity_candidate"]
    payload: CandidatePayload


class LivenessPingMessage(BaseModel):
    type: Literal["liveness_ping"]
    payload: dict[str, Any] | None = None


class IceFailureMessage(BaseModel):
    type: Literal["ice_failure"]
    payload: dict[str, Any] | None = None


InboundMessage = Annotated[
    Union[
        JoinQueueMessage,
        LeaveQueueMessage,
        LeaveRoomMessage,
        ChatMessage,
        TypingMessage,
        NegotiationOfferMessage,
        NegotiationAnswerMessage,
        ConnectivityCandidateMessage,
        LivenessPingMessage,
        IceFailureMessage,
    ],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(envelope: Envelope) -> InboundMessage:
    """Validate an envelope against the known message kinds.

    Raises ``pydantic.ValidationError`` for unknown kinds or malformed payloads.
    """

    frame: dict[str, Any] = {"type": envelope.type}
    if envelope.payload is not None:
        frame["payload"] = envelope.payload
    return inbound_adapter.validate_python(frame)


# Outbound payloads


class OutboundPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectedPayload(OutboundPayload):
    id: str
    alias: str
    online_count: int


class QueueJoinedPayload(OutboundPayload):
    position: int = Field(..., ge=1)


class MatchedPayload(OutboundPayload):
    room_id: str
    partner_alias: str
    partner_language: str
    partner_country: str
    common_interests: list[str]
    is_initiator: bool


class ChatMessageOutPayload(OutboundPayload):
    sender: str = Field(..., alias="from")
    text: str
    timestamp: int


class TypingOutPayload(OutboundPayload):
    is_typing: bool


class LivenessPongPayload(OutboundPayload):
    online_count: int
    queue_length: int


def envelope(kind: OutboundType, payload: BaseModel | dict[str, Any] | None = None) -> dict[str, Any]:
    """Build an outbound frame ready for ``send_json``."""

    if isinstance(payload, BaseModel):
        body = payload.model_dump(by_alias=True)
    else:
        body = dict(payload or {})
    return {"type": kind.value, "payload": body}
