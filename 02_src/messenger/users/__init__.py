"""Users module."""

from .service import IUserService, Session, UserService

__all__ = ["IUserService", "Session", "UserService"]
