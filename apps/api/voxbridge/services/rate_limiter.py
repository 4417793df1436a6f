"""Fixed-window rate limiting keyed by participant and action kind."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Tuple

from ..core.config import RateLimitRule


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class RateLimiter:
    """Local best-effort limiter; kinds without a rule are never limited."""

    def __init__(self, rules: Mapping[str, RateLimitRule], clock: Callable[[], float] = time.monotonic) -> None:
        self._rules = dict(rules)
        self._clock = clock
        self._windows: Dict[Tuple[str, str], _Window] = {}

    def allow(self, participant_id: str, kind: str) -> bool:
        rule = self._rules.get(kind)
        if rule is None:
            return True

        now = self._clock()
        key = (participant_id, kind)
        window = self._windows.get(key)
        if window is None or now - window.started_at > rule.window_seconds:
            self._windows[key] = _Window(started_at=now, count=1)
            return True

        window.count += 1
        return window.count <= rule.max_events

    def forget(self, participant_id: str) -> None:
        """Drop every window held by ``participant_id``."""

        for key in [key for key in self._windows if key[0] == participant_id]:
            del self._windows[key]

    def sweep(self, idle_seconds: float) -> int:
        """Evict windows that started more than ``idle_seconds`` ago; return how many."""

        now = self._clock()
        stale = [key for key, window in self._windows.items() if now - window.started_at > idle_seconds]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._windows)
