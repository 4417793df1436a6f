"""Data contracts for RTC endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field


class IceServerResponse(BaseModel):
    urls: list[str] = Field(..., min_length=1, description="STUN or TURN URLs")
    username: str | None = Field(default=None, description="Expiry timestamp used as TURN username")
    credential: str | None = Field(default=None, description="HMAC-SHA1 credential, base64 encoded")
