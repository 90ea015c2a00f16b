"""User-related data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AuthType(str, Enum):
    """How a user authenticates."""

    LOCAL = "local"
    GOOGLE = "google"


@dataclass
class User:
    """An identity record."""

    id: str
    name: str
    email: str
    auth_type: AuthType
    created_at: datetime
    updated_at: datetime
    avatar: str | None = None
    password_hash: str | None = None  # local accounts only

    def public(self) -> "PublicUser":
        """Return the profile fields safe to show other users."""
        return PublicUser(
            id=self.id, name=self.name, email=self.email, avatar=self.avatar
        )


@dataclass
class PublicUser:
    """Public profile of a user (no credential fields)."""

    id: str
    name: str
    email: str
    avatar: str | None = None
