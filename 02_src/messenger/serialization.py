"""Wire shapes shared by HTTP responses and socket payloads.

Identifiers are exposed as ``_id`` and field names are camelCase, which is
what the web client consumes.
"""

from datetime import datetime
from typing import Any

from .models import (
    Conversation,
    ConversationSummary,
    GroupConversation,
    LastMessagePreview,
    PopulatedMessage,
    PublicUser,
    User,
)


def _iso(ts: datetime) -> str:
    return ts.isoformat()


def public_user(user: PublicUser | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {
        "_id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
    }


def user_profile(user: User, include_auth_type: bool = False) -> dict[str, Any]:
    """Profile of the signed-in user. Never includes the password hash."""
    data = {
        "_id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "createdAt": _iso(user.created_at),
        "updatedAt": _iso(user.updated_at),
    }
    if include_auth_type:
        data["authType"] = user.auth_type.value
    return data


def message(populated: PopulatedMessage) -> dict[str, Any]:
    msg = populated.message
    return {
        "_id": msg.id,
        "conversationId": msg.conversation_id,
        "sender": public_user(populated.sender),
        "content": msg.content,
        "fileId": msg.file_id,
        "createdAt": _iso(msg.created_at),
        "updatedAt": _iso(msg.created_at),
    }


def conversation(conv: Conversation) -> dict[str, Any]:
    data = {
        "_id": conv.id,
        "participants": list(conv.participants),
        "isGroup": conv.is_group,
        "lastMessage": conv.last_message_id,
        "createdAt": _iso(conv.created_at),
        "updatedAt": _iso(conv.updated_at),
    }
    if isinstance(conv, GroupConversation):
        data["groupName"] = conv.group_name
        data["groupAvatar"] = conv.group_avatar
        data["groupAdmin"] = conv.group_admin
    return data


def last_message(preview: LastMessagePreview | None) -> dict[str, Any] | None:
    if preview is None:
        return None
    return {
        "_id": preview.id,
        "content": preview.content,
        "fileId": preview.file_id,
        "createdAt": _iso(preview.created_at),
        "sender": preview.sender_id,
    }


def conversation_summary(summary: ConversationSummary) -> dict[str, Any]:
    conv = summary.conversation
    if isinstance(conv, GroupConversation):
        return {
            "_id": conv.id,
            "isGroup": True,
            "groupName": conv.group_name,
            "groupAvatar": conv.group_avatar,
            "groupAdmin": public_user(summary.group_admin),
            "participants": [public_user(p) for p in summary.participants],
            "participantsCount": len(conv.participants),
            "lastMessage": last_message(summary.last_message),
            "updatedAt": _iso(conv.updated_at),
        }

    other = summary.participants[0] if summary.participants else None
    return {
        "_id": conv.id,
        "isGroup": False,
        "participants": public_user(other),
        "lastMessage": last_message(summary.last_message),
        "updatedAt": _iso(conv.updated_at),
    }
