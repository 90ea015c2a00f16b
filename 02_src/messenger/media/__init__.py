"""Media module."""

from .media_store import (
    AVATAR_MEDIA_TYPES,
    GROUP_AVATAR_FOLDER,
    MAX_AVATAR_BYTES,
    MAX_MESSAGE_MEDIA_BYTES,
    MESSAGE_MEDIA_FOLDER,
    MESSAGE_MEDIA_TYPES,
    USER_AVATAR_FOLDER,
    CloudinaryMediaStore,
    IMediaStore,
    check_media,
    public_id_from_url,
)

__all__ = [
    "IMediaStore",
    "CloudinaryMediaStore",
    "check_media",
    "public_id_from_url",
    "MESSAGE_MEDIA_TYPES",
    "AVATAR_MEDIA_TYPES",
    "MAX_MESSAGE_MEDIA_BYTES",
    "MAX_AVATAR_BYTES",
    "MESSAGE_MEDIA_FOLDER",
    "GROUP_AVATAR_FOLDER",
    "USER_AVATAR_FOLDER",
]
