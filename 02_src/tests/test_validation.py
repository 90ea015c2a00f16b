"""Tests for request validation."""

import pytest

from messenger.errors import ValidationError
from messenger.validation import (
    CreateGroupRequest,
    Invalid,
    LoginRequest,
    RegisterRequest,
    SendMessageRequest,
    UpdateProfileRequest,
    Valid,
    require_valid,
    validate,
)


class TestValidate:
    """Tests for the Valid/Invalid result."""

    def test_valid_register(self):
        result = validate(
            RegisterRequest,
            {"name": "  Alice ", "email": " Alice@Example.COM ", "password": "pass"},
        )

        assert isinstance(result, Valid)
        assert result.value.name == "Alice"
        assert result.value.email == "alice@example.com"

    def test_invalid_register_reports_each_field(self):
        result = validate(
            RegisterRequest, {"name": "Al", "email": "nope", "password": "123"}
        )

        assert isinstance(result, Invalid)
        assert set(result.errors) == {"name", "email", "password"}
        assert result.errors["email"] == ["Please enter a valid email"]

    def test_missing_fields(self):
        result = validate(LoginRequest, {})

        assert isinstance(result, Invalid)
        assert set(result.errors) == {"email", "password"}

    def test_profile_update_needs_a_field(self):
        result = validate(UpdateProfileRequest, {})

        assert isinstance(result, Invalid)
        assert "At least one field" in result.errors["body"][0]

    def test_camel_case_aliases(self):
        result = validate(
            CreateGroupRequest, {"groupName": "Team", "participants": ["u2"]}
        )

        assert isinstance(result, Valid)
        assert result.value.group_name == "Team"

    def test_group_needs_participants(self):
        result = validate(CreateGroupRequest, {"groupName": "Team", "participants": []})

        assert isinstance(result, Invalid)
        assert "participants" in result.errors

    def test_message_content_limit(self):
        result = validate(
            SendMessageRequest, {"conversationId": "c1", "content": "x" * 2001}
        )

        assert isinstance(result, Invalid)
        assert "content" in result.errors


class TestRequireValid:
    """Tests for require_valid."""

    def test_returns_model(self):
        data = require_valid(SendMessageRequest, {"conversationId": "c1"})

        assert data.conversation_id == "c1"
        assert data.content is None

    def test_raises_with_field_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            require_valid(SendMessageRequest, {"conversationId": "  "})

        assert exc_info.value.status_code == 400
        assert "conversationId" in exc_info.value.errors
