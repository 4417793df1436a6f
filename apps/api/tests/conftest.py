"""Shared fakes: a controllable clock and in-memory connections."""
from __future__ import annotations

from typing import Any

import pytest

from voxbridge.core.config import Settings
from voxbridge.services.lobby import Lobby

WALL_CLOCK = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Records delivered frames instead of writing to a socket."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.open = True
        self.close_code: int | None = None

    @property
    def is_open(self) -> bool:
        return self.open

    def deliver(self, message: dict[str, Any]) -> bool:
        if not self.open:
            return False
        self.messages.append(message)
        return True

    async def close(self, code: int = 1000) -> None:
        self.open = False
        self.close_code = code

    def types(self) -> list[str]:
        return [message["type"] for message in self.messages]

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [message["payload"] for message in self.messages if message["type"] == kind]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def lobby(config: Settings, clock: FakeClock) -> Lobby:
    return Lobby(config, clock=clock, wall_clock=lambda: WALL_CLOCK)
