"""Request helpers shared by the routers: session lookup and body parsing."""

import json
from typing import Any, Awaitable, Callable, Iterable, Mapping

from fastapi import Request, Response
from starlette.datastructures import UploadFile

from ..app import IApplication
from ..errors import AuthenticationError, ValidationError
from ..models import MediaFile, User

TOKEN_COOKIE = "token"


def token_from(
    cookies: Mapping[str, str],
    headers: Mapping[str, str],
    query_token: str | None = None,
) -> str | None:
    """Session token from a bearer header, a query parameter or the cookie.

    Explicit credentials win over the cookie.
    """
    authorization = headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    if query_token and query_token.strip():
        return query_token.strip()

    return cookies.get(TOKEN_COOKIE) or None


def create_auth_dependency(app: IApplication) -> Callable[[Request], Awaitable[User]]:
    """Dependency resolving the signed-in user or failing with 401."""

    async def current_user(request: Request) -> User:
        token = token_from(request.cookies, request.headers)
        if not token:
            raise AuthenticationError("Unauthorized - No token provided")
        return await app.users.authenticate(token)

    return current_user


def set_session_cookie(response: Response, app: IApplication, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=app.tokens.ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=app.settings.production,
    )


def clear_session_cookie(response: Response, app: IApplication) -> None:
    response.delete_cookie(
        TOKEN_COOKIE,
        httponly=True,
        samesite="lax",
        secure=app.settings.production,
    )


async def _to_media(upload: UploadFile) -> MediaFile:
    return MediaFile(
        filename=upload.filename or "",
        content_type=upload.content_type or "application/octet-stream",
        data=await upload.read(),
    )


async def read_body(
    request: Request,
    list_fields: Iterable[str] = (),
    file_fields: Iterable[str] = (),
) -> tuple[dict[str, Any], dict[str, MediaFile]]:
    """Parse a JSON or form body into a payload dict and uploaded files.

    Form fields named in ``list_fields`` keep every repeated value; other
    fields keep the last one. Files are only read for ``file_fields``.
    """
    list_fields = set(list_fields)
    file_fields = set(file_fields)
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(
        ("multipart/form-data", "application/x-www-form-urlencoded")
    ):
        form = await request.form()
        payload: dict[str, Any] = {}
        files: dict[str, MediaFile] = {}
        for key in form.keys():
            values = form.getlist(key)
            if key in file_fields:
                upload = values[-1]
                if isinstance(upload, UploadFile) and upload.filename:
                    files[key] = await _to_media(upload)
            elif key in list_fields:
                payload[key] = [v for v in values if isinstance(v, str)]
            elif isinstance(values[-1], str):
                payload[key] = values[-1]
        return payload, files

    raw = await request.body()
    if not raw.strip():
        return {}, {}
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload, {}
