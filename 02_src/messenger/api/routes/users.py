"""User and session API routes."""

from fastapi import APIRouter, Depends, Request, Response

from ... import serialization
from ...app import IApplication
from ...errors import ValidationError
from ...models import User
from ...validation import (
    GoogleLoginRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from ..deps import (
    clear_session_cookie,
    create_auth_dependency,
    read_body,
    set_session_cookie,
)


def create_users_router(app: IApplication) -> APIRouter:
    """Create users router."""
    router = APIRouter(prefix="/api/users", tags=["users"])
    current_user = create_auth_dependency(app)

    @router.post("/register", status_code=201)
    async def register(data: RegisterRequest) -> dict:
        """Create a password-based account."""
        user = await app.users.register(data.name, data.email, data.password)
        return {
            "success": True,
            "message": "User registered successfully",
            "data": serialization.user_profile(user),
        }

    @router.post("/login")
    async def login(data: LoginRequest, response: Response) -> dict:
        """Sign in with email and password."""
        session = await app.users.login(data.email, data.password)
        set_session_cookie(response, app, session.token)
        return {
            "success": True,
            "message": "Login successful",
            "data": serialization.user_profile(session.user),
            "token": session.token,
        }

    @router.post("/google-login")
    async def google_login(data: GoogleLoginRequest, response: Response) -> dict:
        """Sign in with a Google authorization code."""
        session = await app.users.google_login(data.code)
        set_session_cookie(response, app, session.token)
        return {
            "success": True,
            "message": "Google login successful",
            "data": serialization.user_profile(session.user, include_auth_type=True),
            "token": session.token,
        }

    @router.post("/logout")
    async def logout(response: Response, user: User = Depends(current_user)) -> dict:
        clear_session_cookie(response, app)
        return {"success": True, "message": "Logged out successfully"}

    @router.get("/profile")
    async def get_profile(user: User = Depends(current_user)) -> dict:
        return {
            "success": True,
            "message": "User profile retrieved successfully",
            "data": serialization.user_profile(user, include_auth_type=True),
        }

    @router.patch("/profile")
    async def update_profile(
        data: UpdateProfileRequest, user: User = Depends(current_user)
    ) -> dict:
        """Change display name and/or email."""
        updated = await app.users.update_profile(
            user.id, name=data.name, email=data.email
        )
        return {
            "success": True,
            "message": "Profile updated successfully",
            "data": serialization.user_profile(updated),
        }

    @router.patch("/avatar")
    async def update_avatar(
        request: Request, user: User = Depends(current_user)
    ) -> dict:
        """Replace the avatar with the uploaded ``avatar`` file."""
        _, files = await read_body(request, file_fields=("avatar",))
        avatar = files.get("avatar")
        if avatar is None:
            raise ValidationError("No file uploaded")
        updated = await app.users.update_avatar(user.id, avatar)
        return {
            "success": True,
            "message": "Avatar updated successfully",
            "data": serialization.user_profile(updated),
        }

    @router.delete("/account")
    async def delete_account(
        response: Response, user: User = Depends(current_user)
    ) -> dict:
        await app.users.delete_account(user.id)
        clear_session_cookie(response, app)
        return {"success": True, "message": "Account deleted successfully"}

    @router.get("/allUsers")
    async def all_users(user: User = Depends(current_user)) -> dict:
        """Every other user's public profile."""
        users = await app.users.list_users(user.id)
        return {
            "success": True,
            "message": "Users retrieved successfully",
            "data": [serialization.public_user(u) for u in users],
        }

    return router
