from __future__ import annotations

import pytest

from voxbridge.services.registry import ConnectionRegistry
from voxbridge.services.rooms import RoomTable


@pytest.fixture
def registry(clock):
    return ConnectionRegistry(clock=clock)


@pytest.fixture
def rooms(clock):
    return RoomTable(clock=clock)


def test_create_links_both_members(registry, rooms, make_connection):
    alice = registry.register(make_connection())
    bob = registry.register(make_connection())

    room = rooms.create(alice, bob)

    assert alice.room_id == bob.room_id == room.id
    assert room.members == (alice, bob)
    assert room.partner_of(alice.id) is bob
    assert room.partner_of(bob.id) is alice
    assert room.partner_of("stranger") is None
    assert len(rooms) == 1


def test_create_rejects_same_or_busy_participant(registry, rooms, make_connection):
    alice = registry.register(make_connection())
    bob = registry.register(make_connection())
    carol = registry.register(make_connection())

    with pytest.raises(ValueError):
        rooms.create(alice, alice)

    rooms.create(alice, bob)
    with pytest.raises(ValueError):
        rooms.create(carol, bob)


def test_leave_detaches_both_and_is_idempotent(registry, rooms, make_connection):
    alice = registry.register(make_connection())
    bob = registry.register(make_connection())
    room = rooms.create(alice, bob)
    alice.negotiation_started_at = 5.0

    assert rooms.leave(alice) is bob
    assert alice.room_id is None and bob.room_id is None
    assert alice.negotiation_started_at is None
    assert rooms.get(room.id) is None

    assert rooms.leave(alice) is None
    assert rooms.leave(bob) is None
    assert len(rooms) == 0


def test_close_twice_returns_none(registry, rooms, make_connection):
    room = rooms.create(registry.register(make_connection()), registry.register(make_connection()))

    assert rooms.close(room.id) is room
    assert rooms.close(room.id) is None


def test_expired_rooms(registry, rooms, clock, make_connection):
    old = rooms.create(registry.register(make_connection()), registry.register(make_connection()))
    clock.advance(1000)
    young = rooms.create(registry.register(make_connection()), registry.register(make_connection()))
    clock.advance(900)

    assert rooms.expired(1800) == [old]
    assert young in list(rooms)
