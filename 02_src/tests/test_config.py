"""Tests for configuration and logging setup."""

import json
import logging

import pytest

from messenger.config import (
    DEFAULT_TOKEN_TTL_SECONDS,
    PROJECT_ROOT,
    Settings,
    parse_origins,
    resolve_db_path,
)
from messenger.logging_config import JSONFormatter, setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", ":memory:")
        monkeypatch.setenv("JWT_SECRET", "x" * 32)
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("CLIENT_URL", "https://a.example, https://b.example")
        monkeypatch.delenv("JWT_TTL_SECONDS", raising=False)

        settings = Settings.from_env()

        assert settings.database_url == ":memory:"
        assert settings.production is True
        assert settings.client_origins == ["https://a.example", "https://b.example"]
        assert settings.token_ttl_seconds == DEFAULT_TOKEN_TTL_SECONDS

    def test_missing_secret_gets_ephemeral_one(self):
        first = Settings(database_url=":memory:")
        second = Settings(database_url=":memory:")

        assert len(first.jwt_secret) >= 16
        assert first.jwt_secret != second.jwt_secret

    def test_short_secret_rejected(self):
        with pytest.raises(ValueError):
            Settings(database_url=":memory:", jwt_secret="short")

    def test_parse_origins_default(self):
        assert parse_origins(None) == ["http://localhost:3000"]
        assert parse_origins(" , ") == ["http://localhost:3000"]

    def test_resolve_relative_db_path(self):
        assert resolve_db_path("03_data/test.db") == PROJECT_ROOT / "03_data/test.db"
        assert resolve_db_path(":memory:") == ":memory:"


class TestLogging:
    """Tests for structured logging."""

    def test_json_formatter(self):
        record = logging.LogRecord(
            name="messenger.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="hello %s",
            args=("world",),
            exc_info=None,
        )
        record.context = {"attempt": 2}
        record.user_id = "u1"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "messenger.test"
        assert data["context"] == {"attempt": 2}
        assert data["user_id"] == "u1"
        assert "conversation_id" not in data

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        root = logging.getLogger()
        previous_handlers = root.handlers[:]
        previous_level = root.level

        try:
            setup_logging(log_level="INFO", log_file=str(log_file))
            logging.getLogger("messenger.test").info("written")
            for handler in root.handlers:
                handler.flush()

            lines = log_file.read_text(encoding="utf-8").splitlines()
            assert json.loads(lines[-1])["message"] == "written"
        finally:
            for handler in root.handlers[:]:
                handler.close()
                root.removeHandler(handler)
            for handler in previous_handlers:
                root.addHandler(handler)
            root.setLevel(previous_level)
