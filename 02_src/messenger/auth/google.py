"""Google OAuth client: authorization code -> user info."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from ..errors import UpstreamError
from ..logging_config import get_logger

logger = get_logger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass
class GoogleProfile:
    """Identity returned by Google."""

    email: str
    name: str
    picture: str | None = None


class IGoogleOAuthClient(Protocol):
    """Exchanges an authorization code for the user's Google profile."""

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """Resolve an authorization code to a profile."""
        ...


class GoogleOAuthClient:
    """Talks to Google's OAuth 2.0 endpoints over httpx."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = "postmessage",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._transport = transport

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """Resolve an authorization code to a profile."""
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=10.0
            ) as client:
                token_response = await client.post(
                    TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "redirect_uri": self._redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_response.raise_for_status()
                access_token = token_response.json()["access_token"]

                info_response = await client.get(
                    USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_response.raise_for_status()
                info = info_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Google OAuth exchange failed: %s", e)
            raise UpstreamError("Google authentication failed") from e

        email = info.get("email")
        if not email:
            raise UpstreamError("Google authentication failed")

        return GoogleProfile(
            email=email.strip().lower(),
            name=info.get("name") or email.split("@")[0],
            picture=info.get("picture"),
        )
