"""Conversation data models.

A conversation is either direct (exactly two participants, one record per
unordered pair) or a group (two or more participants with a name and an
admin). The two shapes are separate dataclasses joined by the
``Conversation`` union.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from .users import PublicUser

MIN_GROUP_SIZE = 2


def direct_key(user_a: str, user_b: str) -> str:
    """Order-independent key identifying the direct conversation of a pair."""
    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


@dataclass
class DirectConversation:
    """A two-participant, non-group thread."""

    id: str
    participants: list[str]
    created_at: datetime
    updated_at: datetime
    last_message_id: str | None = None

    is_group = False

    @property
    def key(self) -> str:
        return direct_key(self.participants[0], self.participants[1])

    def other_participant(self, user_id: str) -> str | None:
        """Return the participant that is not ``user_id``."""
        others = [p for p in self.participants if p != user_id]
        return others[0] if others else None


@dataclass
class GroupConversation:
    """A named conversation with an admin and two or more participants."""

    id: str
    participants: list[str]
    group_name: str
    group_admin: str
    created_at: datetime
    updated_at: datetime
    group_avatar: str | None = None
    last_message_id: str | None = None

    is_group = True


Conversation = Union[DirectConversation, GroupConversation]


@dataclass
class LastMessagePreview:
    """Most recent message of a conversation, for the conversation list."""

    id: str
    content: str
    file_id: str | None
    created_at: datetime
    sender_id: str


@dataclass
class ConversationSummary:
    """A conversation as seen by one participant in their conversation list."""

    conversation: Conversation
    # Direct: the other participant only. Group: everyone.
    participants: list[PublicUser | None] = field(default_factory=list)
    group_admin: PublicUser | None = None
    last_message: LastMessagePreview | None = None
