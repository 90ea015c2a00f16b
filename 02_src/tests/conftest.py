"""Pytest configuration and fixtures."""

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from messenger.errors import UpstreamError  # noqa: E402
from messenger.models import AuthType, MediaFile, User  # noqa: E402

TEST_SECRET = "test-secret-with-enough-length"


class FakeMediaStore:
    """Records uploads and deletions instead of calling Cloudinary."""

    def __init__(self):
        self.uploads: list[tuple[str, MediaFile]] = []
        self.deleted: list[str] = []
        self.fail_upload = False
        self.fail_delete = False

    async def upload(self, media: MediaFile, folder: str) -> str:
        if self.fail_upload:
            raise UpstreamError("Failed to upload media")
        self.uploads.append((folder, media))
        return f"https://res.cloudinary.com/demo/image/upload/v1/{folder}/{media.filename}"

    async def delete(self, url: str) -> None:
        if self.fail_delete:
            raise UpstreamError("Failed to delete media")
        self.deleted.append(url)


class FakeConnection:
    """Socket connection that keeps every frame it is sent."""

    def __init__(self, connection_id: str | None = None, fail: bool = False):
        self.id = connection_id or str(uuid.uuid4())
        self.frames: list[dict] = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.frames.append(data)

    def events(self, name: str | None = None) -> list[dict]:
        if name is None:
            return list(self.frames)
        return [f for f in self.frames if f["event"] == name]


def image(name: str = "photo.png", content_type: str = "image/png", size: int = 16):
    return MediaFile(filename=name, content_type=content_type, data=b"x" * size)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from messenger.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def broadcaster():
    from messenger.realtime import Broadcaster

    return Broadcaster()


@pytest.fixture
def tokens():
    from messenger.auth import TokenSigner

    return TokenSigner(TEST_SECRET, ttl_seconds=3600)


@pytest.fixture
def user_service(storage, media_store, tokens):
    from messenger.users import UserService

    return UserService(storage=storage, media_store=media_store, tokens=tokens)


@pytest.fixture
def conversation_service(storage, media_store, broadcaster):
    from messenger.conversations import ConversationService

    return ConversationService(
        storage=storage, media_store=media_store, broadcaster=broadcaster
    )


@pytest.fixture
def make_user(storage):
    """Factory saving a local user with a predictable id."""

    async def _make(user_id: str, name: str | None = None, **kwargs) -> User:
        now = datetime.now(timezone.utc)
        user = User(
            id=user_id,
            name=name or user_id.capitalize(),
            email=kwargs.pop("email", f"{user_id}@example.com"),
            auth_type=kwargs.pop("auth_type", AuthType.LOCAL),
            created_at=now,
            updated_at=now,
            **kwargs,
        )
        await storage.save_user(user)
        return user

    return _make


@pytest.fixture
def online(broadcaster):
    """Factory connecting a user to the broadcaster with a fake socket."""

    async def _connect(user_id: str) -> FakeConnection:
        connection = FakeConnection(f"conn-{user_id}-{uuid.uuid4().hex[:6]}")
        broadcaster.connect(connection, user_id)
        await broadcaster.register_user(connection, user_id)
        connection.frames.clear()
        return connection

    return _connect
