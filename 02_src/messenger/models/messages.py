"""Message-related data models."""

from dataclasses import dataclass
from datetime import datetime

from .users import PublicUser

MAX_CONTENT_LENGTH = 2000


@dataclass
class Message:
    """A single message in a conversation. Immutable once stored."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    file_id: str | None = None  # media URL


@dataclass
class PopulatedMessage:
    """A message with its sender resolved to a public profile."""

    message: Message
    sender: PublicUser | None  # None when the sender account was deleted


@dataclass
class MediaFile:
    """An uploaded file received at the HTTP boundary."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")
