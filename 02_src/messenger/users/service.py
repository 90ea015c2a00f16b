"""User accounts: registration, login and profile management."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from ..auth import IGoogleOAuthClient, TokenSigner, hash_password, verify_password
from ..errors import AuthenticationError, NotFoundError, UpstreamError, ValidationError
from ..logging_config import get_logger
from ..media import (
    AVATAR_MEDIA_TYPES,
    MAX_AVATAR_BYTES,
    USER_AVATAR_FOLDER,
    IMediaStore,
    check_media,
)
from ..models import AuthType, MediaFile, PublicUser, User
from ..storage import IStorage

logger = get_logger(__name__)


@dataclass
class Session:
    """A signed-in user and their token."""

    user: User
    token: str


class IUserService(Protocol):
    """Account lifecycle."""

    async def register(self, name: str, email: str, password: str) -> User:
        """Create a password-based account."""
        ...

    async def login(self, email: str, password: str) -> Session:
        """Check credentials and issue a token."""
        ...

    async def google_login(self, code: str) -> Session:
        """Sign in (creating the account if needed) with Google."""
        ...

    async def authenticate(self, token: str) -> User:
        """Resolve a token to an existing user."""
        ...

    async def update_profile(
        self, user_id: str, name: str | None = None, email: str | None = None
    ) -> User:
        """Change display name and/or email."""
        ...

    async def update_avatar(self, user_id: str, avatar: MediaFile) -> User:
        """Replace the user's avatar image."""
        ...

    async def delete_account(self, user_id: str) -> None:
        ...

    async def list_users(self, requester_id: str) -> list[PublicUser]:
        ...


class UserService:
    """Manages user accounts."""

    def __init__(
        self,
        storage: IStorage,
        media_store: IMediaStore,
        tokens: TokenSigner,
        google: IGoogleOAuthClient | None = None,
    ):
        self._storage = storage
        self._media = media_store
        self._tokens = tokens
        self._google = google

    async def register(self, name: str, email: str, password: str) -> User:
        """Create a password-based account."""
        if await self._storage.get_user_by_email(email):
            raise ValidationError("User with this email already exists")

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            auth_type=AuthType.LOCAL,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        await self._storage.save_user(user)
        logger.info("Registered user %s", user.id)
        return user

    async def login(self, email: str, password: str) -> Session:
        """Check credentials and issue a token."""
        user = await self._storage.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        return Session(user=user, token=self._tokens.issue(user.id))

    async def google_login(self, code: str) -> Session:
        """Sign in (creating the account if needed) with Google."""
        if self._google is None:
            raise UpstreamError("Google login is not configured")

        profile = await self._google.fetch_profile(code)
        user = await self._storage.get_user_by_email(profile.email)
        if user is None:
            now = datetime.now(timezone.utc)
            user = User(
                id=str(uuid.uuid4()),
                name=profile.name,
                email=profile.email,
                avatar=profile.picture,
                auth_type=AuthType.GOOGLE,
                created_at=now,
                updated_at=now,
            )
            await self._storage.save_user(user)
            logger.info("Registered Google user %s", user.id)
        return Session(user=user, token=self._tokens.issue(user.id))

    async def authenticate(self, token: str) -> User:
        """Resolve a token to an existing user."""
        user_id = self._tokens.verify(token)
        user = await self._storage.get_user(user_id)
        if user is None:
            raise AuthenticationError("Unauthorized - Invalid token")
        return user

    async def get_profile(self, user_id: str) -> User:
        user = await self._storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(
        self, user_id: str, name: str | None = None, email: str | None = None
    ) -> User:
        """Change display name and/or email."""
        if not name and not email:
            raise ValidationError(
                "At least one field (name or email) must be provided"
            )

        user = await self.get_profile(user_id)
        if email and email != user.email:
            existing = await self._storage.get_user_by_email(email)
            if existing and existing.id != user_id:
                raise ValidationError("Email is already in use by another user")
            user.email = email
        if name:
            user.name = name

        user.updated_at = datetime.now(timezone.utc)
        await self._storage.update_user(user)
        return user

    async def update_avatar(self, user_id: str, avatar: MediaFile) -> User:
        """Replace the user's avatar image."""
        check_media(avatar, AVATAR_MEDIA_TYPES, MAX_AVATAR_BYTES)
        user = await self.get_profile(user_id)

        if user.avatar:
            try:
                await self._media.delete(user.avatar)
            except UpstreamError:
                logger.warning("Failed to delete old avatar of %s", user_id)

        url = await self._media.upload(avatar, USER_AVATAR_FOLDER)
        user.avatar = url
        user.updated_at = datetime.now(timezone.utc)
        await self._storage.update_user(user)
        return user

    async def delete_account(self, user_id: str) -> None:
        """Delete the account. Conversations and messages keep stale references."""
        user = await self.get_profile(user_id)
        if user.avatar:
            try:
                await self._media.delete(user.avatar)
            except UpstreamError:
                logger.warning("Failed to delete avatar of %s", user_id)

        await self._storage.delete_user(user_id)
        logger.info("Deleted user %s", user_id)

    async def list_users(self, requester_id: str) -> list[PublicUser]:
        """Every other user's public profile."""
        users = await self._storage.list_users(exclude_id=requester_id)
        return [user.public() for user in users]
