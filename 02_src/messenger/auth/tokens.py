"""Signed session tokens (JWT, HS256)."""

import base64
import hashlib
import hmac
import json
import time

from ..errors import AuthenticationError


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    pad = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + pad).encode("ascii"))


def _sign(secret: str, message: bytes) -> str:
    return _b64url(hmac.new(secret.encode(), message, hashlib.sha256).digest())


class TokenSigner:
    """Issues and verifies session tokens whose subject is a user id."""

    def __init__(self, secret: str, ttl_seconds: int):
        self._secret = secret
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, user_id: str, now: float | None = None) -> str:
        issued_at = int(now if now is not None else time.time())
        header = {"alg": "HS256", "typ": "JWT"}
        payload = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self._ttl_seconds,
        }
        header_b64 = _b64url(json.dumps(header, separators=(",", ":")).encode())
        payload_b64 = _b64url(json.dumps(payload, separators=(",", ":")).encode())
        signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
        return f"{header_b64}.{payload_b64}.{_sign(self._secret, signing_input)}"

    def verify(self, token: str, now: float | None = None) -> str:
        """Return the user id of a valid token.

        Raises:
            AuthenticationError: malformed, tampered or expired token.
        """
        try:
            header_b64, payload_b64, signature = token.split(".", 2)
            signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
        except ValueError:
            raise AuthenticationError("Unauthorized - Invalid token")

        if not hmac.compare_digest(
            _sign(self._secret, signing_input).encode(), signature.encode()
        ):
            raise AuthenticationError("Unauthorized - Invalid token")

        try:
            payload = json.loads(_b64url_decode(payload_b64))
        except ValueError:
            raise AuthenticationError("Unauthorized - Invalid token")
        if not isinstance(payload, dict):
            raise AuthenticationError("Unauthorized - Invalid token")

        expires_at = payload.get("exp")
        if not isinstance(expires_at, (int, float)):
            raise AuthenticationError("Unauthorized - Invalid token")
        current = now if now is not None else time.time()
        if int(expires_at) < int(current):
            raise AuthenticationError("Unauthorized - Token expired")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Unauthorized - Invalid token")
        return subject
