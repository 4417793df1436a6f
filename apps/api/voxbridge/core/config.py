"""Application configuration for the signaling service."""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class RateLimitRule(BaseModel):
    """Fixed-window budget for one action kind."""

    max_events: int = Field(..., ge=1)
    window_seconds: float = Field(..., gt=0)


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "chat_message": RateLimitRule(max_events=10, window_seconds=5),
        "join_queue": RateLimitRule(max_events=5, window_seconds=10),
        "typing": RateLimitRule(max_events=20, window_seconds=5),
        "connectivity_candidate": RateLimitRule(max_events=100, window_seconds=10),
        "negotiation_offer": RateLimitRule(max_events=5, window_seconds=10),
        "negotiation_answer": RateLimitRule(max_events=5, window_seconds=10),
    }


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    heartbeat_timeout: float = Field(default=45, gt=0)
    heartbeat_sweep_interval: float = Field(default=15, gt=0)
    room_max_age: float = Field(default=30 * 60, gt=0)
    room_sweep_interval: float = Field(default=60, gt=0)
    queue_timeout: float = Field(default=120, gt=0)
    queue_sweep_interval: float = Field(default=30, gt=0)
    match_fallback_after: float = Field(default=30, gt=0)
    negotiation_timeout: float = Field(default=15, gt=0)
    negotiation_sweep_interval: float = Field(default=1, gt=0)
    rate_limit_idle: float = Field(default=60, gt=0)
    rate_limit_sweep_interval: float = Field(default=30, gt=0)

    max_interests: int = Field(default=10, ge=0)
    max_text_length: int = Field(default=1000, ge=1)
    outbound_queue_size: int = Field(default=256, ge=1)

    rate_limits: dict[str, RateLimitRule] = Field(default_factory=_default_rate_limits)

    turn_secret: str = Field(default="")
    turn_urls: Annotated[list[str], NoDecode] = Field(default_factory=list)
    turn_ttl: int = Field(default=300, ge=1)
    stun_urls: Annotated[list[str], NoDecode] = Field(default_factory=lambda: [
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    ])

    @field_validator("cors_allow_origins", "turn_urls", "stun_urls", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        """Allow comma-separated env values for URL and origin lists."""

        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def _check_sweep_intervals(self) -> "Settings":
        pairs = {
            "heartbeat_sweep_interval": ("heartbeat_timeout", self.heartbeat_sweep_interval, self.heartbeat_timeout),
            "room_sweep_interval": ("room_max_age", self.room_sweep_interval, self.room_max_age),
            "queue_sweep_interval": ("queue_timeout", self.queue_sweep_interval, self.queue_timeout),
            "negotiation_sweep_interval": (
                "negotiation_timeout",
                self.negotiation_sweep_interval,
                self.negotiation_timeout,
            ),
            "rate_limit_sweep_interval": ("rate_limit_idle", self.rate_limit_sweep_interval, self.rate_limit_idle),
        }
        for name, (ceiling_name, interval, ceiling) in pairs.items():
            if interval >= ceiling:
                raise ValueError(f"{name} must be shorter than {ceiling_name}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
