"""Process-lifetime counters reported by the health and stats endpoints."""
from __future__ import annotations

from dataclasses import asdict, dataclass

from pydantic.alias_generators import to_camel


@dataclass(slots=True)
class Metrics:
    total_connections: int = 0
    total_matches: int = 0
    ice_failures: int = 0
    negotiation_timeouts: int = 0
    heartbeat_evictions: int = 0
    rooms_expired: int = 0
    queue_timeouts: int = 0

    def as_dict(self) -> dict[str, int]:
        return {to_camel(key): value for key, value in asdict(self).items()}
