"""Conversations, groups and messages.

Every mutating operation persists first and broadcasts afterwards, so a
client that reacts to an event can always read back the new state.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Protocol

from .. import serialization
from ..errors import AuthorizationError, NotFoundError, UpstreamError, ValidationError
from ..logging_config import get_logger
from ..media import (
    AVATAR_MEDIA_TYPES,
    GROUP_AVATAR_FOLDER,
    MAX_AVATAR_BYTES,
    MAX_MESSAGE_MEDIA_BYTES,
    MESSAGE_MEDIA_FOLDER,
    MESSAGE_MEDIA_TYPES,
    IMediaStore,
    check_media,
)
from ..models import (
    MAX_CONTENT_LENGTH,
    MIN_GROUP_SIZE,
    Conversation,
    ConversationSummary,
    DirectConversation,
    EventName,
    GroupConversation,
    LastMessagePreview,
    MediaFile,
    Message,
    PopulatedMessage,
    User,
)
from ..realtime import IBroadcaster
from ..storage import IStorage

logger = get_logger(__name__)


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class IConversationService(Protocol):
    """Conversation and message operations on behalf of a requester."""

    async def start_conversation(
        self, requester_id: str, recipient_id: str
    ) -> tuple[DirectConversation, bool]:
        """Get or create the direct conversation with ``recipient_id``."""
        ...

    async def send_message(
        self,
        requester_id: str,
        conversation_id: str,
        content: str | None = None,
        media: MediaFile | None = None,
    ) -> PopulatedMessage:
        """Store a message and broadcast it to the conversation room."""
        ...

    async def get_messages(
        self, requester_id: str, conversation_id: str
    ) -> list[PopulatedMessage]:
        """Full history of a conversation, oldest first."""
        ...

    async def get_conversations(self, requester_id: str) -> list[ConversationSummary]:
        """The requester's conversation list, most recent first."""
        ...

    async def is_participant(self, user_id: str, conversation_id: str) -> bool:
        """Whether ``user_id`` belongs to an existing conversation."""
        ...

    async def delete_conversation(self, requester_id: str, conversation_id: str) -> None:
        """Delete a conversation and its messages."""
        ...

    async def create_group(
        self,
        requester_id: str,
        group_name: str,
        participant_ids: list[str],
        avatar: MediaFile | None = None,
    ) -> GroupConversation:
        """Create a group administered by the requester."""
        ...

    async def add_group_members(
        self, requester_id: str, conversation_id: str, participant_ids: list[str]
    ) -> GroupConversation:
        ...

    async def remove_group_members(
        self, requester_id: str, conversation_id: str, participant_ids: list[str]
    ) -> GroupConversation:
        ...

    async def update_group(
        self,
        requester_id: str,
        conversation_id: str,
        group_name: str | None = None,
        avatar: MediaFile | None = None,
    ) -> GroupConversation:
        ...

    async def leave_group(
        self, requester_id: str, conversation_id: str
    ) -> GroupConversation | None:
        """Leave a group; ``None`` when leaving deleted it."""
        ...

    async def delete_group(self, requester_id: str, conversation_id: str) -> None:
        ...


class ConversationService:
    """Manages direct conversations, groups and their messages."""

    def __init__(
        self,
        storage: IStorage,
        media_store: IMediaStore,
        broadcaster: IBroadcaster,
    ):
        self._storage = storage
        self._media = media_store
        self._broadcaster = broadcaster

    # Lookups
    async def _get_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def _get_group(self, conversation_id: str) -> GroupConversation:
        conversation = await self._get_conversation(conversation_id)
        if not isinstance(conversation, GroupConversation):
            raise ValidationError("Conversation is not a group")
        return conversation

    @staticmethod
    def _require_participant(
        conversation: Conversation,
        user_id: str,
        message: str = "User not part of this conversation",
    ) -> None:
        if user_id not in conversation.participants:
            raise AuthorizationError(message)

    async def _require_users(self, user_ids: list[str]) -> dict[str, User]:
        users = await self._storage.get_users(user_ids)
        missing = [user_id for user_id in user_ids if user_id not in users]
        if missing:
            raise NotFoundError("One or more users not found")
        return users

    async def _populate(self, messages: list[Message]) -> list[PopulatedMessage]:
        senders = await self._storage.get_users([m.sender_id for m in messages])
        result = []
        for msg in messages:
            sender = senders.get(msg.sender_id)
            result.append(
                PopulatedMessage(
                    message=msg, sender=sender.public() if sender else None
                )
            )
        return result

    async def is_participant(self, user_id: str, conversation_id: str) -> bool:
        """Whether ``user_id`` belongs to an existing conversation."""
        conversation = await self._storage.get_conversation(conversation_id)
        return conversation is not None and user_id in conversation.participants

    # Direct conversations
    async def start_conversation(
        self, requester_id: str, recipient_id: str
    ) -> tuple[DirectConversation, bool]:
        """Get or create the direct conversation with ``recipient_id``.

        Returns the conversation and whether it was created by this call.
        """
        if requester_id == recipient_id:
            raise ValidationError("Cannot start a conversation with yourself")

        if await self._storage.get_user(recipient_id) is None:
            raise NotFoundError("Recipient not found")

        existing = await self._storage.find_direct_conversation(
            requester_id, recipient_id
        )
        if existing is not None:
            return existing, False

        now = datetime.now(timezone.utc)
        candidate = DirectConversation(
            id=str(uuid.uuid4()),
            participants=[requester_id, recipient_id],
            created_at=now,
            updated_at=now,
        )
        conversation = await self._storage.insert_direct_conversation(candidate)
        if conversation.id != candidate.id:
            # Lost the race against a concurrent start for the same pair
            return conversation, False

        logger.info(
            "Conversation %s started between %s and %s",
            conversation.id,
            requester_id,
            recipient_id,
        )
        await self._broadcaster.emit(
            [requester_id, recipient_id],
            EventName.NEW_CONVERSATION,
            serialization.conversation(conversation),
        )
        return conversation, True

    # Messages
    async def send_message(
        self,
        requester_id: str,
        conversation_id: str,
        content: str | None = None,
        media: MediaFile | None = None,
    ) -> PopulatedMessage:
        """Store a message and broadcast it to the conversation room."""
        conversation = await self._get_conversation(conversation_id)
        self._require_participant(conversation, requester_id)

        text = (content or "").strip()
        if len(text) > MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message cannot exceed {MAX_CONTENT_LENGTH} characters"
            )
        if media is not None:
            check_media(media, MESSAGE_MEDIA_TYPES, MAX_MESSAGE_MEDIA_BYTES)
        if not text and media is None:
            raise ValidationError("Message must contain text or media")

        file_id = None
        if media is not None:
            file_id = await self._media.upload(media, MESSAGE_MEDIA_FOLDER)

        msg = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation.id,
            sender_id=requester_id,
            content=text,
            file_id=file_id,
            created_at=datetime.now(timezone.utc),
        )
        await self._storage.save_message(msg)
        await self._storage.set_last_message(conversation.id, msg.id, msg.created_at)

        [populated] = await self._populate([msg])
        logger.info(
            "Message %s sent",
            msg.id,
            extra={"user_id": requester_id, "conversation_id": conversation.id},
        )
        await self._broadcaster.emit(
            [conversation.id],
            EventName.NEW_MESSAGE,
            serialization.message(populated),
        )
        return populated

    async def get_messages(
        self, requester_id: str, conversation_id: str
    ) -> list[PopulatedMessage]:
        """Full history of a conversation, oldest first."""
        conversation = await self._get_conversation(conversation_id)
        self._require_participant(conversation, requester_id)

        messages = await self._storage.get_messages(conversation.id)
        return await self._populate(messages)

    async def get_conversations(self, requester_id: str) -> list[ConversationSummary]:
        """The requester's conversation list, most recent first."""
        conversations = await self._storage.get_conversations_for_user(requester_id)

        user_ids: list[str] = []
        for conversation in conversations:
            user_ids.extend(conversation.participants)
            if isinstance(conversation, GroupConversation):
                user_ids.append(conversation.group_admin)
        users = await self._storage.get_users(user_ids)

        def profile(user_id: str):
            user = users.get(user_id)
            return user.public() if user else None

        summaries = []
        for conversation in conversations:
            preview = None
            if conversation.last_message_id:
                last = await self._storage.get_message(conversation.last_message_id)
                if last is not None:
                    preview = LastMessagePreview(
                        id=last.id,
                        content=last.content,
                        file_id=last.file_id,
                        created_at=last.created_at,
                        sender_id=last.sender_id,
                    )

            if isinstance(conversation, GroupConversation):
                summaries.append(
                    ConversationSummary(
                        conversation=conversation,
                        participants=[profile(p) for p in conversation.participants],
                        group_admin=profile(conversation.group_admin),
                        last_message=preview,
                    )
                )
            else:
                other = conversation.other_participant(requester_id)
                summaries.append(
                    ConversationSummary(
                        conversation=conversation,
                        participants=[profile(other)] if other else [],
                        last_message=preview,
                    )
                )
        return summaries

    async def delete_conversation(self, requester_id: str, conversation_id: str) -> None:
        """Delete a conversation and its messages.

        Groups go through ``delete_group`` and its admin check.
        """
        conversation = await self._get_conversation(conversation_id)
        self._require_participant(conversation, requester_id)

        if isinstance(conversation, GroupConversation):
            await self.delete_group(requester_id, conversation_id)
            return

        await self._storage.delete_conversation(conversation.id)
        self._broadcaster.close_room(conversation.id)
        logger.info("Conversation %s deleted by %s", conversation.id, requester_id)
        await self._broadcaster.emit(
            conversation.participants,
            EventName.CONVERSATION_DELETED,
            conversation.id,
        )

    # Groups
    async def _upload_group_avatar(self, avatar: MediaFile) -> str:
        check_media(avatar, AVATAR_MEDIA_TYPES, MAX_AVATAR_BYTES)
        return await self._media.upload(avatar, GROUP_AVATAR_FOLDER)

    async def _broadcast_group_update(
        self, group: GroupConversation, extra_rooms: Iterable[str] = ()
    ) -> None:
        await self._broadcaster.emit(
            [group.id, *group.participants, *extra_rooms],
            EventName.GROUP_UPDATED,
            serialization.conversation(group),
        )

    @staticmethod
    def _ensure_admin(group: GroupConversation) -> None:
        # A group whose admin is gone hands the role to its longest member
        if group.group_admin not in group.participants:
            group.group_admin = group.participants[0]
            logger.info("Group %s admin passed to %s", group.id, group.group_admin)

    async def create_group(
        self,
        requester_id: str,
        group_name: str,
        participant_ids: list[str],
        avatar: MediaFile | None = None,
    ) -> GroupConversation:
        """Create a group administered by the requester."""
        participants = _unique(participant_ids)
        if requester_id not in participants:
            participants.append(requester_id)
        if len(participants) < MIN_GROUP_SIZE:
            raise ValidationError(
                f"Group must have at least {MIN_GROUP_SIZE} participants"
            )

        await self._require_users(participants)

        group_avatar = None
        if avatar is not None:
            group_avatar = await self._upload_group_avatar(avatar)

        now = datetime.now(timezone.utc)
        group = GroupConversation(
            id=str(uuid.uuid4()),
            participants=participants,
            group_name=group_name,
            group_admin=requester_id,
            group_avatar=group_avatar,
            created_at=now,
            updated_at=now,
        )
        await self._storage.save_group(group)

        logger.info(
            "Group %s created by %s with %d participants",
            group.id,
            requester_id,
            len(participants),
        )
        await self._broadcaster.emit(
            participants, EventName.NEW_GROUP, serialization.conversation(group)
        )
        return group

    async def add_group_members(
        self, requester_id: str, conversation_id: str, participant_ids: list[str]
    ) -> GroupConversation:
        """Add users to a group the requester belongs to."""
        group = await self._get_group(conversation_id)
        self._require_participant(group, requester_id, "User not part of this group")

        requested = _unique(participant_ids)
        await self._require_users(requested)

        added = [p for p in requested if p not in group.participants]
        if not added:
            raise ValidationError("All users are already in the group")

        group.participants.extend(added)
        await self._storage.update_conversation(group)

        logger.info("Added %s to group %s", added, group.id)
        payload = serialization.conversation(group)
        await self._broadcaster.emit(added, EventName.ADDED_TO_GROUP, payload)
        await self._broadcast_group_update(group)
        return group

    async def remove_group_members(
        self, requester_id: str, conversation_id: str, participant_ids: list[str]
    ) -> GroupConversation:
        """Remove users from a group the requester belongs to."""
        group = await self._get_group(conversation_id)
        self._require_participant(group, requester_id, "User not part of this group")

        requested = _unique(participant_ids)
        if requester_id in requested:
            raise ValidationError("Cannot remove yourself from the group")
        await self._require_users(requested)

        removed = [p for p in requested if p in group.participants]
        if not removed:
            raise ValidationError("None of these users are in the group")

        remaining = [p for p in group.participants if p not in removed]
        if len(remaining) < MIN_GROUP_SIZE:
            raise ValidationError(f"Group must have at least {MIN_GROUP_SIZE} members")

        group.participants = remaining
        self._ensure_admin(group)
        await self._storage.update_conversation(group)

        for user_id in removed:
            self._broadcaster.evict(user_id, group.id)
        logger.info("Removed %s from group %s", removed, group.id)
        await self._broadcaster.emit(removed, EventName.REMOVED_FROM_GROUP, group.id)
        await self._broadcast_group_update(group)
        return group

    async def update_group(
        self,
        requester_id: str,
        conversation_id: str,
        group_name: str | None = None,
        avatar: MediaFile | None = None,
    ) -> GroupConversation:
        """Rename a group and/or replace its avatar."""
        if not group_name and avatar is None:
            raise ValidationError(
                "At least one field (groupName or groupAvatar) must be provided"
            )

        group = await self._get_group(conversation_id)
        self._require_participant(group, requester_id, "User not part of this group")

        if avatar is not None:
            check_media(avatar, AVATAR_MEDIA_TYPES, MAX_AVATAR_BYTES)
            if group.group_avatar:
                await self._media.delete(group.group_avatar)
            group.group_avatar = await self._media.upload(avatar, GROUP_AVATAR_FOLDER)
        if group_name:
            group.group_name = group_name

        await self._storage.update_conversation(group)

        logger.info("Group %s updated by %s", group.id, requester_id)
        await self._broadcast_group_update(group)
        return group

    async def leave_group(
        self, requester_id: str, conversation_id: str
    ) -> GroupConversation | None:
        """Leave a group. Returns ``None`` when leaving deleted the group."""
        group = await self._get_group(conversation_id)
        self._require_participant(group, requester_id, "User not part of this group")

        remaining = [p for p in group.participants if p != requester_id]
        if len(remaining) < MIN_GROUP_SIZE:
            await self._destroy_group(group)
            logger.info("Group %s deleted after %s left", group.id, requester_id)
            return None

        group.participants = remaining
        self._ensure_admin(group)
        await self._storage.update_conversation(group)

        self._broadcaster.evict(requester_id, group.id)
        logger.info("User %s left group %s", requester_id, group.id)
        await self._broadcaster.emit(
            [requester_id], EventName.REMOVED_FROM_GROUP, group.id
        )
        await self._broadcast_group_update(group)
        return group

    async def delete_group(self, requester_id: str, conversation_id: str) -> None:
        """Delete a group. Only its admin may do this."""
        group = await self._get_group(conversation_id)
        if group.group_admin != requester_id:
            raise AuthorizationError("Only group admin can delete the group")

        await self._destroy_group(group)
        logger.info("Group %s deleted by %s", group.id, requester_id)

    async def _destroy_group(self, group: GroupConversation) -> None:
        if group.group_avatar:
            try:
                await self._media.delete(group.group_avatar)
            except UpstreamError:
                logger.warning("Failed to delete avatar of group %s", group.id)

        await self._storage.delete_conversation(group.id)

        rooms = [group.id, *group.participants]
        await self._broadcaster.emit(rooms, EventName.GROUP_DELETED, group.id)
        self._broadcaster.close_room(group.id)
