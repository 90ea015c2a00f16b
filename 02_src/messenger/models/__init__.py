"""Core data models for Messenger."""

from .conversations import (
    MIN_GROUP_SIZE,
    Conversation,
    ConversationSummary,
    DirectConversation,
    GroupConversation,
    LastMessagePreview,
    direct_key,
)
from .events import ClientEvent, EventName, SocketEvent
from .messages import MAX_CONTENT_LENGTH, MediaFile, Message, PopulatedMessage
from .users import AuthType, PublicUser, User

__all__ = [
    # Users
    "AuthType",
    "User",
    "PublicUser",
    # Conversations
    "Conversation",
    "DirectConversation",
    "GroupConversation",
    "ConversationSummary",
    "LastMessagePreview",
    "MIN_GROUP_SIZE",
    "direct_key",
    # Messages
    "Message",
    "PopulatedMessage",
    "MediaFile",
    "MAX_CONTENT_LENGTH",
    # Events
    "EventName",
    "ClientEvent",
    "SocketEvent",
]
