"""Authentication module."""

from .google import GoogleOAuthClient, GoogleProfile, IGoogleOAuthClient
from .passwords import hash_password, verify_password
from .tokens import TokenSigner

__all__ = [
    "GoogleOAuthClient",
    "GoogleProfile",
    "IGoogleOAuthClient",
    "TokenSigner",
    "hash_password",
    "verify_password",
]
