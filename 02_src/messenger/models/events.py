"""Realtime event models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventName(str, Enum):
    """Socket events emitted by the server."""

    NEW_MESSAGE = "newMessage"
    NEW_CONVERSATION = "newConversation"
    CONVERSATION_DELETED = "conversationDeleted"
    NEW_GROUP = "newGroup"
    GROUP_UPDATED = "groupUpdated"
    GROUP_DELETED = "groupDeleted"
    ADDED_TO_GROUP = "addedToGroup"
    REMOVED_FROM_GROUP = "removedFromGroup"
    ONLINE_USERS = "onlineUsers"
    ERROR = "error"


class ClientEvent(str, Enum):
    """Socket events sent by clients."""

    USER_JOIN = "user-join"
    JOIN_CONVERSATION = "joinConversation"
    LEAVE_CONVERSATION = "leaveConversation"


@dataclass
class SocketEvent:
    """A named event with a JSON-serializable payload."""

    event: EventName
    data: Any

    def to_frame(self) -> dict:
        """Wire frame sent over the socket."""
        return {"event": self.event.value, "data": self.data}
