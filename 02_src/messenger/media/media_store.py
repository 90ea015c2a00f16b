"""Media store backed by Cloudinary."""

import asyncio
from typing import Protocol

import cloudinary
import cloudinary.uploader

from ..errors import UpstreamError, ValidationError
from ..logging_config import get_logger
from ..models import MediaFile

logger = get_logger(__name__)

MESSAGE_MEDIA_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "video/mp4", "video/webm"}
)
AVATAR_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

MAX_MESSAGE_MEDIA_BYTES = 100 * 1024 * 1024
MAX_AVATAR_BYTES = 5 * 1024 * 1024

MESSAGE_MEDIA_FOLDER = "chat-media"
GROUP_AVATAR_FOLDER = "group-avatars"
USER_AVATAR_FOLDER = "avatars"


def check_media(
    media: MediaFile, allowed_types: frozenset[str], max_bytes: int
) -> None:
    """Reject a file whose MIME type or size is not acceptable."""
    if media.content_type not in allowed_types:
        allowed = ", ".join(sorted(allowed_types))
        raise ValidationError(
            f"Unsupported file type {media.content_type}. Allowed: {allowed}",
            {"file": ["unsupported type"]},
        )
    if media.size > max_bytes:
        raise ValidationError(
            f"File too large (max {max_bytes // (1024 * 1024)}MB)",
            {"file": ["too large"]},
        )


def public_id_from_url(url: str) -> tuple[str, str]:
    """Derive (public_id, resource_type) from a delivery URL.

    ``https://res.cloudinary.com/<cloud>/image/upload/v1/avatars/abc.png``
    gives ``("avatars/abc", "image")``.
    """
    parts = url.split("/")
    public_id = "/".join(parts[-2:]).rsplit(".", 1)[0]

    if "/video/" in url:
        resource_type = "video"
    elif "/raw/" in url:
        resource_type = "raw"
    else:
        resource_type = "image"
    return public_id, resource_type


class IMediaStore(Protocol):
    """Stores binary attachments and returns stable URLs."""

    async def upload(self, media: MediaFile, folder: str) -> str:
        """Upload a file, return its URL."""
        ...

    async def delete(self, url: str) -> None:
        """Delete a previously uploaded file by URL."""
        ...


class CloudinaryMediaStore:
    """Cloudinary-backed media store."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        if not (cloud_name and api_key and api_secret):
            logger.warning("Cloudinary credentials are missing; uploads will fail")

        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    async def upload(self, media: MediaFile, folder: str) -> str:
        """Upload a file, return its URL."""
        resource_type = "video" if media.is_video else "image"
        try:
            # The SDK is blocking
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                media.data,
                folder=folder,
                resource_type=resource_type,
            )
        except Exception as e:
            logger.error("Cloudinary upload failed: %s", e, exc_info=True)
            raise UpstreamError("Failed to upload media") from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise UpstreamError("Failed to upload media")
        return url

    async def delete(self, url: str) -> None:
        """Delete a previously uploaded file by URL."""
        public_id, resource_type = public_id_from_url(url)
        try:
            await asyncio.to_thread(
                cloudinary.uploader.destroy,
                public_id,
                resource_type=resource_type,
            )
        except Exception as e:
            logger.error("Cloudinary delete failed for %s: %s", public_id, e)
            raise UpstreamError("Failed to delete media") from e
