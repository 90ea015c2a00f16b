"""Project-level configuration and path helpers."""

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .logging_config import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "messenger.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
MIN_JWT_SECRET_LENGTH = 16


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate


def parse_origins(value: str | None) -> list[str]:
    """Split a comma separated CLIENT_URL value, keeping order."""
    if not value or not value.strip():
        return ["http://localhost:3000"]
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return list(dict.fromkeys(origins)) or ["http://localhost:3000"]


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    database_url: PathLike = DEFAULT_DB_PATH
    jwt_secret: str = ""
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    production: bool = False
    client_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "postmessage"

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            logger.warning(
                "JWT_SECRET is not set; using an ephemeral secret, "
                "sessions will not survive a restart"
            )
            self.jwt_secret = secrets.token_urlsafe(48)
        if len(self.jwt_secret) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(
                f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters"
            )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            database_url=resolve_db_path(os.getenv("DATABASE_URL")),
            jwt_secret=os.getenv("JWT_SECRET", "").strip(),
            token_ttl_seconds=int(
                os.getenv("JWT_TTL_SECONDS", str(DEFAULT_TOKEN_TTL_SECONDS))
            ),
            production=os.getenv("APP_ENV", "development") == "production",
            client_origins=parse_origins(os.getenv("CLIENT_URL")),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", "").strip(),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY", "").strip(),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET", "").strip(),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", "").strip(),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", "").strip(),
            google_redirect_uri=os.getenv("GOOGLE_REDIRECT_URI", "postmessage"),
        )
