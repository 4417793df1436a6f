from __future__ import annotations

import random
import re

from voxbridge.services.registry import ConnectionRegistry, generate_alias


def test_register_touch_unregister(clock, make_connection):
    registry = ConnectionRegistry(clock=clock)

    participant = registry.register(make_connection())
    assert participant.id in registry
    assert participant.last_seen == clock.now
    assert (participant.native_language, participant.target_language, participant.country) == ("pt", "en", "BR")

    clock.advance(5)
    assert registry.touch(participant.id) is participant
    assert participant.last_seen == clock.now

    assert registry.unregister(participant.id) is participant
    assert registry.unregister(participant.id) is None
    assert registry.touch(participant.id) is None
    assert len(registry) == 0


def test_idle_lists_participants_past_timeout(clock, make_connection):
    registry = ConnectionRegistry(clock=clock)
    quiet = registry.register(make_connection())
    clock.advance(40)
    chatty = registry.register(make_connection())

    clock.advance(10)

    assert registry.idle(45) == [quiet]
    assert chatty not in registry.idle(45)


def test_generated_alias_is_readable():
    alias = generate_alias(random.Random(7))

    assert re.fullmatch(r"[A-Z][a-z]+[A-Z][a-z]+\d{1,3}", alias)
