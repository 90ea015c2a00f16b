"""Tests for Broadcaster."""

from messenger.models import EventName
from messenger.realtime import Broadcaster

from conftest import FakeConnection


class TestPresence:
    """Tests for presence tracking."""

    async def test_register_broadcasts_online_users(self):
        """Test that every connection learns the new online list."""
        broadcaster = Broadcaster()
        anonymous = FakeConnection("anon")
        broadcaster.connect(anonymous)
        alice = FakeConnection("alice-1")

        await broadcaster.register_user(alice, "alice")

        assert broadcaster.online_users() == ["alice"]
        for connection in (anonymous, alice):
            [frame] = connection.events(EventName.ONLINE_USERS.value)
            assert frame["data"] == ["alice"]

    async def test_user_stays_online_until_last_connection_closes(self):
        """Test that closing one of two tabs keeps the user online."""
        broadcaster = Broadcaster()
        tab1 = FakeConnection("tab1")
        tab2 = FakeConnection("tab2")
        await broadcaster.register_user(tab1, "alice")
        await broadcaster.register_user(tab2, "alice")

        await broadcaster.disconnect(tab1)
        assert broadcaster.online_users() == ["alice"]

        await broadcaster.disconnect(tab2)
        assert broadcaster.online_users() == []

    async def test_offline_rebroadcasts_presence(self):
        broadcaster = Broadcaster()
        alice = FakeConnection("alice")
        bob = FakeConnection("bob")
        await broadcaster.register_user(alice, "alice")
        await broadcaster.register_user(bob, "bob")
        alice.frames.clear()

        await broadcaster.disconnect(bob)

        [frame] = alice.events(EventName.ONLINE_USERS.value)
        assert frame["data"] == ["alice"]

    async def test_disconnect_unknown_connection(self):
        """Test that disconnecting an unregistered connection is harmless."""
        broadcaster = Broadcaster()

        await broadcaster.disconnect(FakeConnection("ghost"))

        assert broadcaster.online_users() == []


class TestRooms:
    """Tests for rooms and emit."""

    async def test_emit_to_room(self):
        broadcaster = Broadcaster()
        inside = FakeConnection("inside")
        outside = FakeConnection("outside")
        broadcaster.join(inside, "room1")

        delivered = await broadcaster.emit(["room1"], EventName.NEW_MESSAGE, {"x": 1})

        assert delivered == 1
        assert inside.events() == [{"event": "newMessage", "data": {"x": 1}}]
        assert outside.events() == []

    async def test_emit_deduplicates_across_rooms(self):
        """Test that a connection in several target rooms gets one frame."""
        broadcaster = Broadcaster()
        connection = FakeConnection("c")
        broadcaster.join(connection, "room1")
        broadcaster.join(connection, "room2")

        delivered = await broadcaster.emit(
            ["room1", "room2"], EventName.GROUP_DELETED, "g1"
        )

        assert delivered == 1
        assert len(connection.events()) == 1

    async def test_failing_connection_is_skipped(self):
        broadcaster = Broadcaster()
        good = FakeConnection("good")
        bad = FakeConnection("bad", fail=True)
        broadcaster.join(good, "room1")
        broadcaster.join(bad, "room1")

        delivered = await broadcaster.emit(["room1"], EventName.NEW_MESSAGE, {})

        assert delivered == 1
        assert len(good.events()) == 1

    async def test_leave_and_empty_room(self):
        broadcaster = Broadcaster()
        connection = FakeConnection("c")
        broadcaster.join(connection, "room1")

        broadcaster.leave(connection, "room1")

        assert broadcaster.room_members("room1") == set()
        assert await broadcaster.emit(["room1"], EventName.NEW_MESSAGE, {}) == 0

    async def test_evict_removes_every_connection_of_user(self):
        broadcaster = Broadcaster()
        tab1 = FakeConnection("tab1")
        tab2 = FakeConnection("tab2")
        other = FakeConnection("other")
        await broadcaster.register_user(tab1, "alice")
        await broadcaster.register_user(tab2, "alice")
        await broadcaster.register_user(other, "bob")
        for connection in (tab1, tab2, other):
            broadcaster.join(connection, "group1")

        broadcaster.evict("alice", "group1")

        assert broadcaster.room_members("group1") == {other}

    async def test_evict_covers_connections_that_never_registered(self):
        """Test that a bound but offline connection is still evicted."""
        broadcaster = Broadcaster()
        silent = FakeConnection("silent")
        broadcaster.connect(silent, "alice")
        broadcaster.join(silent, "group1")

        broadcaster.evict("alice", "group1")

        assert broadcaster.online_users() == []
        assert broadcaster.room_members("group1") == set()

    async def test_close_room(self):
        broadcaster = Broadcaster()
        connection = FakeConnection("c")
        broadcaster.join(connection, "room1")

        broadcaster.close_room("room1")

        assert broadcaster.room_members("room1") == set()

    async def test_disconnect_leaves_all_rooms(self):
        broadcaster = Broadcaster()
        connection = FakeConnection("c")
        await broadcaster.register_user(connection, "alice")
        broadcaster.join(connection, "room1")

        await broadcaster.disconnect(connection)

        assert broadcaster.room_members("room1") == set()
        assert broadcaster.room_members("alice") == set()
