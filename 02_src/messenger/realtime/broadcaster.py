"""Room-based broadcaster for live socket connections."""

import asyncio
from typing import Any, Iterable, Protocol

from ..logging_config import get_logger
from ..models import EventName, SocketEvent

logger = get_logger(__name__)


class Connection(Protocol):
    """A live client connection."""

    id: str

    async def send_json(self, data: Any) -> None:
        """Send one JSON frame to the client."""
        ...


class IBroadcaster(Protocol):
    """Room membership, presence and event fan-out."""

    def connect(self, connection: Connection, user_id: str | None = None) -> None:
        """Track a newly accepted connection, bound to its user when known."""
        ...

    async def disconnect(self, connection: Connection) -> None:
        """Drop a connection from every room and from presence."""
        ...

    async def register_user(self, connection: Connection, user_id: str) -> None:
        """Mark a user online and join their personal room."""
        ...

    def join(self, connection: Connection, room: str) -> None:
        """Subscribe a connection to a room."""
        ...

    def leave(self, connection: Connection, room: str) -> None:
        """Unsubscribe a connection from a room."""
        ...

    def evict(self, user_id: str, room: str) -> None:
        """Unsubscribe every connection of a user from a room."""
        ...

    def close_room(self, room: str) -> None:
        """Drop a room and all its subscriptions."""
        ...

    async def emit(self, rooms: Iterable[str], event: EventName, data: Any) -> int:
        """Deliver an event once to every connection in any of ``rooms``."""
        ...

    def online_users(self) -> list[str]:
        """Identities with at least one live connection."""
        ...


class Broadcaster:
    """In-memory rooms and presence.

    Only touched from the event loop, so no locking. Every authenticated
    connection is bound to its user on connect; presence only counts those
    that sent ``user-join``. A user goes offline when their last registered
    connection closes, not their first.
    """

    def __init__(self):
        self._connections: set[Connection] = set()
        self._rooms: dict[str, set[Connection]] = {}
        self._presence: dict[str, set[Connection]] = {}
        self._users: dict[Connection, str] = {}

    def connect(self, connection: Connection, user_id: str | None = None) -> None:
        """Track a newly accepted connection, bound to its user when known."""
        self._connections.add(connection)
        if user_id is not None:
            self._users[connection] = user_id

    async def disconnect(self, connection: Connection) -> None:
        """Drop a connection from every room and from presence."""
        self._connections.discard(connection)
        for room in list(self._rooms):
            self.leave(connection, room)

        user_id = self._users.pop(connection, None)
        if user_id is None:
            return

        sockets = self._presence.get(user_id)
        if sockets is not None:
            sockets.discard(connection)
            if not sockets:
                del self._presence[user_id]
                logger.info("User %s went offline", user_id)
                await self._broadcast_presence()

    async def register_user(self, connection: Connection, user_id: str) -> None:
        """Mark a user online and join their personal room."""
        self._connections.add(connection)
        self._users[connection] = user_id
        self._presence.setdefault(user_id, set()).add(connection)
        self.join(connection, user_id)
        logger.info("User %s joined with connection %s", user_id, connection.id)
        await self._broadcast_presence()

    def join(self, connection: Connection, room: str) -> None:
        """Subscribe a connection to a room."""
        self._rooms.setdefault(room, set()).add(connection)
        logger.debug("Connection %s joined room %s", connection.id, room)

    def leave(self, connection: Connection, room: str) -> None:
        """Unsubscribe a connection from a room."""
        members = self._rooms.get(room)
        if not members or connection not in members:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]
        logger.debug("Connection %s left room %s", connection.id, room)

    def evict(self, user_id: str, room: str) -> None:
        """Unsubscribe every connection of a user from a room."""
        for connection, owner in list(self._users.items()):
            if owner == user_id:
                self.leave(connection, room)

    def close_room(self, room: str) -> None:
        """Drop a room and all its subscriptions."""
        if self._rooms.pop(room, None) is not None:
            logger.debug("Room %s closed", room)

    def room_members(self, room: str) -> set[Connection]:
        return set(self._rooms.get(room, set()))

    def online_users(self) -> list[str]:
        """Identities with at least one live connection."""
        return list(self._presence.keys())

    async def emit(self, rooms: Iterable[str], event: EventName, data: Any) -> int:
        """Deliver an event once to every connection in any of ``rooms``."""
        targets: dict[Connection, None] = {}
        for room in rooms:
            for connection in self._rooms.get(room, ()):
                targets[connection] = None

        return await self._send(list(targets), SocketEvent(event=event, data=data))

    async def _broadcast_presence(self) -> None:
        await self._send(
            list(self._connections),
            SocketEvent(event=EventName.ONLINE_USERS, data=self.online_users()),
        )

    async def _send(self, connections: list[Connection], event: SocketEvent) -> int:
        if not connections:
            return 0

        frame = event.to_frame()
        results = await asyncio.gather(
            *[connection.send_json(frame) for connection in connections],
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Failed to deliver %s to connection %s: %s",
                    event.event.value,
                    connection.id,
                    result,
                )
            else:
                delivered += 1
        return delivered
