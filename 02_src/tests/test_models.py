"""Tests for data models."""

from datetime import datetime, timezone

from messenger.models import (
    AuthType,
    DirectConversation,
    EventName,
    GroupConversation,
    MediaFile,
    SocketEvent,
    User,
    direct_key,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestUser:
    """Tests for User model."""

    def test_public_profile_has_no_credentials(self):
        """Test that the public profile drops hash and auth type."""
        user = User(
            id="u1",
            name="Alice",
            email="alice@example.com",
            auth_type=AuthType.LOCAL,
            password_hash="secret",
            created_at=NOW,
            updated_at=NOW,
        )

        public = user.public()

        assert public.id == "u1"
        assert public.email == "alice@example.com"
        assert not hasattr(public, "password_hash")
        assert not hasattr(public, "auth_type")

    def test_auth_type_values(self):
        assert AuthType.LOCAL.value == "local"
        assert AuthType.GOOGLE.value == "google"


class TestConversations:
    """Tests for conversation models."""

    def test_direct_key_is_order_independent(self):
        assert direct_key("a", "b") == direct_key("b", "a") == "a:b"

    def test_other_participant(self):
        conversation = DirectConversation(
            id="c1", participants=["u1", "u2"], created_at=NOW, updated_at=NOW
        )

        assert conversation.other_participant("u1") == "u2"
        assert conversation.other_participant("u2") == "u1"
        assert conversation.key == "u1:u2"

    def test_is_group_flag(self):
        group = GroupConversation(
            id="g1",
            participants=["u1", "u2"],
            group_name="Team",
            group_admin="u1",
            created_at=NOW,
            updated_at=NOW,
        )
        direct = DirectConversation(
            id="c1", participants=["u1", "u2"], created_at=NOW, updated_at=NOW
        )

        assert group.is_group is True
        assert direct.is_group is False


class TestMessages:
    """Tests for message models."""

    def test_media_file(self):
        video = MediaFile(filename="a.mp4", content_type="video/mp4", data=b"123")

        assert video.size == 3
        assert video.is_video


class TestSocketEvent:
    """Tests for SocketEvent."""

    def test_to_frame(self):
        event = SocketEvent(event=EventName.NEW_MESSAGE, data={"_id": "m1"})

        assert event.to_frame() == {"event": "newMessage", "data": {"_id": "m1"}}
