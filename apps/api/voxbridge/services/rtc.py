"""ICE server credentials for the browser's media engine.

Relay credentials follow the TURN REST convention: the username is the unix
time at which the credential expires and the password is the base64 HMAC-SHA1
of that username under the secret shared with the TURN server. The signaling
core never uses them itself.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Callable

from ..core.config import Settings


@dataclass(slots=True)
class IceServer:
    urls: list[str]
    username: str | None = None
    credential: str | None = None


def turn_credential(secret: str, username: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), username.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def issue_ice_servers(config: Settings, clock: Callable[[], float] = time.time) -> list[IceServer]:
    """Return STUN servers plus, when configured, a time-boxed TURN credential."""

    servers: list[IceServer] = []
    if config.stun_urls:
        servers.append(IceServer(urls=list(config.stun_urls)))
    if config.turn_secret and config.turn_urls:
        username = str(int(clock()) + config.turn_ttl)
        servers.append(
            IceServer(
                urls=list(config.turn_urls),
                username=username,
                credential=turn_credential(config.turn_secret, username),
            )
        )
    return servers
