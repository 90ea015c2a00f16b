"""Tests for UserService."""

import pytest

from messenger.auth import GoogleProfile
from messenger.errors import (
    AuthenticationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from messenger.models import AuthType
from messenger.users import UserService

from conftest import image


class FakeGoogle:
    def __init__(self, profile: GoogleProfile):
        self.profile = profile
        self.codes: list[str] = []

    async def fetch_profile(self, code: str) -> GoogleProfile:
        self.codes.append(code)
        return self.profile


class TestRegisterAndLogin:
    """Tests for password accounts."""

    async def test_register(self, user_service, storage):
        user = await user_service.register("Alice", "alice@example.com", "pass")

        stored = await storage.get_user(user.id)
        assert stored.auth_type is AuthType.LOCAL
        assert stored.password_hash != "pass"

    async def test_duplicate_email(self, user_service):
        await user_service.register("Alice", "alice@example.com", "pass")

        with pytest.raises(ValidationError, match="already exists"):
            await user_service.register("Other", "alice@example.com", "pass")

    async def test_login_issues_token(self, user_service, tokens):
        user = await user_service.register("Alice", "alice@example.com", "pass")

        session = await user_service.login("alice@example.com", "pass")

        assert session.user.id == user.id
        assert tokens.verify(session.token) == user.id

    @pytest.mark.parametrize(
        "email, password",
        [("alice@example.com", "wrong"), ("nobody@example.com", "pass")],
    )
    async def test_login_failures(self, user_service, email, password):
        await user_service.register("Alice", "alice@example.com", "pass")

        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await user_service.login(email, password)

    async def test_google_account_cannot_password_login(self, user_service, make_user):
        await make_user("g1", email="g@example.com", auth_type=AuthType.GOOGLE)

        with pytest.raises(AuthenticationError):
            await user_service.login("g@example.com", "anything")


class TestGoogleLogin:
    """Tests for google_login."""

    async def test_creates_google_user(self, storage, media_store, tokens):
        google = FakeGoogle(GoogleProfile("new@example.com", "New", "https://pic"))
        service = UserService(storage, media_store, tokens, google=google)

        session = await service.google_login("code-1")

        assert session.user.auth_type is AuthType.GOOGLE
        assert session.user.avatar == "https://pic"
        assert google.codes == ["code-1"]

    async def test_reuses_existing_account(self, storage, media_store, tokens, make_user):
        existing = await make_user("u1", email="known@example.com")
        google = FakeGoogle(GoogleProfile("known@example.com", "Known"))
        service = UserService(storage, media_store, tokens, google=google)

        session = await service.google_login("code")

        assert session.user.id == existing.id

    async def test_not_configured(self, user_service):
        with pytest.raises(UpstreamError):
            await user_service.google_login("code")


class TestAuthenticate:
    """Tests for authenticate."""

    async def test_valid_token(self, user_service, tokens, make_user):
        await make_user("u1")

        user = await user_service.authenticate(tokens.issue("u1"))

        assert user.id == "u1"

    async def test_token_for_deleted_user(self, user_service, tokens):
        with pytest.raises(AuthenticationError):
            await user_service.authenticate(tokens.issue("ghost"))


class TestProfile:
    """Tests for profile management."""

    async def test_update_profile(self, user_service, make_user):
        await make_user("u1")

        user = await user_service.update_profile("u1", name="Renamed")

        assert user.name == "Renamed"
        assert user.email == "u1@example.com"

    async def test_email_taken(self, user_service, make_user):
        await make_user("u1")
        await make_user("u2")

        with pytest.raises(ValidationError, match="already in use"):
            await user_service.update_profile("u1", email="u2@example.com")

    async def test_update_requires_field(self, user_service, make_user):
        await make_user("u1")

        with pytest.raises(ValidationError):
            await user_service.update_profile("u1")

    async def test_unknown_user(self, user_service):
        with pytest.raises(NotFoundError):
            await user_service.get_profile("ghost")

    async def test_update_avatar_replaces_old(self, user_service, media_store, make_user):
        await make_user("u1", avatar="https://cdn/image/upload/v1/avatars/old.png")

        user = await user_service.update_avatar("u1", image("new.png"))

        assert media_store.deleted == ["https://cdn/image/upload/v1/avatars/old.png"]
        assert user.avatar.endswith("avatars/new.png")

    async def test_avatar_type_checked(self, user_service, media_store, make_user):
        await make_user("u1")

        with pytest.raises(ValidationError):
            await user_service.update_avatar("u1", image("a.gif", "image/gif"))

        assert media_store.uploads == []

    async def test_delete_account(self, user_service, storage, media_store, make_user):
        await make_user("u1", avatar="https://cdn/image/upload/v1/avatars/a.png")
        media_store.fail_delete = True

        await user_service.delete_account("u1")

        assert await storage.get_user("u1") is None

    async def test_list_users_excludes_requester(self, user_service, make_user):
        for user_id in ("u1", "u2", "u3"):
            await make_user(user_id)

        users = await user_service.list_users("u1")

        assert sorted(u.id for u in users) == ["u2", "u3"]
