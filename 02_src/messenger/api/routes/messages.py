"""Conversation, message and group API routes."""

from fastapi import APIRouter, Depends, Request, Response

from ... import serialization
from ...app import IApplication
from ...models import User
from ...validation import (
    CreateGroupRequest,
    GroupMembersRequest,
    SendMessageRequest,
    StartConversationRequest,
    UpdateGroupRequest,
    require_valid,
)
from ..deps import create_auth_dependency, read_body


def create_messages_router(app: IApplication) -> APIRouter:
    """Create messages router."""
    router = APIRouter(prefix="/api/messages", tags=["messages"])
    current_user = create_auth_dependency(app)

    @router.get("/getConversations")
    async def get_conversations(user: User = Depends(current_user)) -> dict:
        """The caller's conversation list, most recent first."""
        summaries = await app.conversations.get_conversations(user.id)
        return {
            "success": True,
            "message": "Conversations retrieved successfully",
            "conversations": [
                serialization.conversation_summary(s) for s in summaries
            ],
        }

    @router.post("/send", status_code=201)
    async def send_message(request: Request, user: User = Depends(current_user)) -> dict:
        """Send text and/or an uploaded ``media`` file."""
        payload, files = await read_body(request, file_fields=("media",))
        data = require_valid(SendMessageRequest, payload)
        populated = await app.conversations.send_message(
            user.id,
            data.conversation_id,
            content=data.content,
            media=files.get("media"),
        )
        return {
            "success": True,
            "message": "Message sent successfully",
            "data": serialization.message(populated),
        }

    @router.post("/startConversation")
    async def start_conversation(
        data: StartConversationRequest,
        response: Response,
        user: User = Depends(current_user),
    ) -> dict:
        """Get or create the direct conversation with ``recipientId``."""
        conversation, created = await app.conversations.start_conversation(
            user.id, data.recipient_id
        )
        if created:
            response.status_code = 201
        return {
            "success": True,
            "message": (
                "Conversation started successfully"
                if created
                else "Conversation already exists"
            ),
            "conversation": serialization.conversation(conversation),
        }

    # Groups
    @router.post("/group", status_code=201)
    async def create_group(request: Request, user: User = Depends(current_user)) -> dict:
        """Create a group from JSON or a form with an optional ``groupAvatar``."""
        payload, files = await read_body(
            request, list_fields=("participants",), file_fields=("groupAvatar",)
        )
        data = require_valid(CreateGroupRequest, payload)
        group = await app.conversations.create_group(
            user.id,
            data.group_name,
            data.participants,
            avatar=files.get("groupAvatar"),
        )
        return {
            "success": True,
            "message": "Group created successfully",
            "conversation": serialization.conversation(group),
        }

    @router.patch("/group")
    async def update_group(request: Request, user: User = Depends(current_user)) -> dict:
        payload, files = await read_body(request, file_fields=("groupAvatar",))
        data = require_valid(UpdateGroupRequest, payload)
        group = await app.conversations.update_group(
            user.id,
            data.conversation_id,
            group_name=data.group_name,
            avatar=files.get("groupAvatar"),
        )
        return {
            "success": True,
            "message": "Group updated successfully",
            "conversation": serialization.conversation(group),
        }

    @router.patch("/group/members/add")
    async def add_group_members(
        data: GroupMembersRequest, user: User = Depends(current_user)
    ) -> dict:
        group = await app.conversations.add_group_members(
            user.id, data.conversation_id, data.participants
        )
        return {
            "success": True,
            "message": "Members added successfully",
            "conversation": serialization.conversation(group),
        }

    @router.patch("/group/members/remove")
    async def remove_group_members(
        data: GroupMembersRequest, user: User = Depends(current_user)
    ) -> dict:
        group = await app.conversations.remove_group_members(
            user.id, data.conversation_id, data.participants
        )
        return {
            "success": True,
            "message": "Members removed successfully",
            "conversation": serialization.conversation(group),
        }

    @router.patch("/group/{conversation_id}/leave")
    async def leave_group(
        conversation_id: str, user: User = Depends(current_user)
    ) -> dict:
        """Leave a group; the group is deleted when too few members remain."""
        group = await app.conversations.leave_group(user.id, conversation_id)
        if group is None:
            return {
                "success": True,
                "message": "Left group; group deleted",
                "conversation": None,
            }
        return {
            "success": True,
            "message": "Left group successfully",
            "conversation": serialization.conversation(group),
        }

    @router.delete("/group/{conversation_id}")
    async def delete_group(
        conversation_id: str, user: User = Depends(current_user)
    ) -> dict:
        await app.conversations.delete_group(user.id, conversation_id)
        return {"success": True, "message": "Group deleted successfully"}

    # Parameterised routes last
    @router.get("/{conversation_id}")
    async def get_messages(
        conversation_id: str, user: User = Depends(current_user)
    ) -> dict:
        """Full message history, oldest first."""
        messages = await app.conversations.get_messages(user.id, conversation_id)
        return {
            "success": True,
            "message": "Messages retrieved successfully",
            "messages": [serialization.message(m) for m in messages],
        }

    @router.delete("/{conversation_id}")
    async def delete_conversation(
        conversation_id: str, user: User = Depends(current_user)
    ) -> dict:
        await app.conversations.delete_conversation(user.id, conversation_id)
        return {"success": True, "message": "Conversation deleted successfully"}

    return router
