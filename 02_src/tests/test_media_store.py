"""Tests for the Cloudinary media store."""

from unittest.mock import patch

import pytest

from messenger.errors import UpstreamError, ValidationError
from messenger.media import (
    AVATAR_MEDIA_TYPES,
    MAX_AVATAR_BYTES,
    MESSAGE_MEDIA_TYPES,
    CloudinaryMediaStore,
    check_media,
    public_id_from_url,
)
from messenger.models import MediaFile


@pytest.fixture
def store():
    return CloudinaryMediaStore("demo", "key", "secret")


class TestCheckMedia:
    """Tests for MIME and size checks."""

    def test_accepts_allowed_type(self):
        check_media(
            MediaFile("a.gif", "image/gif", b"gif"), MESSAGE_MEDIA_TYPES, 1024
        )

    def test_rejects_type(self):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            check_media(
                MediaFile("a.webp", "image/webp", b"x"), MESSAGE_MEDIA_TYPES, 1024
            )

    def test_rejects_oversized(self):
        big = MediaFile("a.png", "image/png", b"x" * (MAX_AVATAR_BYTES + 1))

        with pytest.raises(ValidationError, match="too large"):
            check_media(big, AVATAR_MEDIA_TYPES, MAX_AVATAR_BYTES)


class TestPublicId:
    """Tests for public_id_from_url."""

    def test_image_url(self):
        url = "https://res.cloudinary.com/demo/image/upload/v1712/avatars/abc.png"

        assert public_id_from_url(url) == ("avatars/abc", "image")

    def test_video_url(self):
        url = "https://res.cloudinary.com/demo/video/upload/v1/chat-media/clip.mp4"

        assert public_id_from_url(url) == ("chat-media/clip", "video")


class TestCloudinaryMediaStore:
    """Tests for upload and delete with the SDK patched."""

    async def test_upload_image(self, store):
        with patch(
            "cloudinary.uploader.upload",
            return_value={"secure_url": "https://cdn/avatars/a.png"},
        ) as upload:
            url = await store.upload(
                MediaFile("a.png", "image/png", b"png"), "avatars"
            )

        assert url == "https://cdn/avatars/a.png"
        upload.assert_called_once_with(b"png", folder="avatars", resource_type="image")

    async def test_upload_video_uses_video_resource(self, store):
        with patch(
            "cloudinary.uploader.upload",
            return_value={"secure_url": "https://cdn/chat-media/c.mp4"},
        ) as upload:
            await store.upload(MediaFile("c.mp4", "video/mp4", b"mp4"), "chat-media")

        assert upload.call_args.kwargs["resource_type"] == "video"

    async def test_upload_failure(self, store):
        with patch("cloudinary.uploader.upload", side_effect=RuntimeError("down")):
            with pytest.raises(UpstreamError, match="Failed to upload media"):
                await store.upload(MediaFile("a.png", "image/png", b"png"), "x")

    async def test_delete(self, store):
        url = "https://res.cloudinary.com/demo/image/upload/v1/group-avatars/g.png"

        with patch("cloudinary.uploader.destroy", return_value={"result": "ok"}) as destroy:
            await store.delete(url)

        destroy.assert_called_once_with("group-avatars/g", resource_type="image")

    async def test_delete_failure(self, store):
        with patch("cloudinary.uploader.destroy", side_effect=RuntimeError("down")):
            with pytest.raises(UpstreamError):
                await store.delete("https://cdn/image/upload/v1/avatars/a.png")
