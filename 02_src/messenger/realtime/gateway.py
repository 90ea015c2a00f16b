"""WebSocket gateway: turns client frames into broadcaster calls."""

import json
import uuid
from typing import Any, Awaitable, Callable

from fastapi import WebSocket, WebSocketDisconnect

from ..logging_config import get_logger
from ..models import ClientEvent, EventName, SocketEvent
from .broadcaster import Connection, IBroadcaster

logger = get_logger(__name__)


MembershipCheck = Callable[[str, str], Awaitable[bool]]


class WebSocketConnection:
    """Connection backed by a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.id = str(uuid.uuid4())
        self._websocket = websocket

    async def send_json(self, data: Any) -> None:
        await self._websocket.send_json(data)

    async def receive_text(self) -> str:
        return await self._websocket.receive_text()


class SocketGateway:
    """Handles the client side of the socket protocol.

    Frames are JSON objects ``{"event": <name>, "data": <payload>}``. The
    user id is established by the HTTP layer before ``serve`` is called;
    ``user-join`` must repeat it, ``joinConversation`` requires membership.
    """

    def __init__(self, broadcaster: IBroadcaster, is_participant: MembershipCheck):
        self._broadcaster = broadcaster
        self._is_participant = is_participant

    async def serve(self, connection: WebSocketConnection, user_id: str) -> None:
        """Read frames until the client disconnects."""
        self._broadcaster.connect(connection, user_id)
        try:
            while True:
                raw = await connection.receive_text()
                try:
                    frame = json.loads(raw)
                except ValueError:
                    await self._send_error(connection, "Malformed frame")
                    continue
                await self.handle_frame(connection, user_id, frame)
        except WebSocketDisconnect:
            logger.debug("Connection %s closed by client", connection.id)
        finally:
            await self._broadcaster.disconnect(connection)

    async def handle_frame(
        self, connection: Connection, user_id: str, frame: Any
    ) -> None:
        """Dispatch one decoded client frame."""
        if not isinstance(frame, dict) or "event" not in frame:
            await self._send_error(connection, "Malformed frame")
            return

        try:
            event = ClientEvent(frame["event"])
        except ValueError:
            await self._send_error(connection, f"Unknown event {frame['event']!r}")
            return

        data = frame.get("data")

        if event is ClientEvent.USER_JOIN:
            if data != user_id:
                await self._send_error(connection, "Identity mismatch")
                return
            await self._broadcaster.register_user(connection, user_id)

        elif event is ClientEvent.JOIN_CONVERSATION:
            if not isinstance(data, str) or not data:
                await self._send_error(connection, "Conversation ID is required")
                return
            if not await self._is_participant(user_id, data):
                await self._send_error(connection, "Not a participant")
                return
            self._broadcaster.join(connection, data)
            logger.debug(
                "Joined conversation room",
                extra={
                    "user_id": user_id,
                    "conversation_id": data,
                    "connection_id": connection.id,
                },
            )

        elif event is ClientEvent.LEAVE_CONVERSATION:
            if isinstance(data, str) and data:
                self._broadcaster.leave(connection, data)

    async def _send_error(self, connection: Connection, message: str) -> None:
        try:
            await connection.send_json(
                SocketEvent(event=EventName.ERROR, data={"message": message}).to_frame()
            )
        except Exception as e:
            logger.warning("Failed to send error to %s: %s", connection.id, e)
