"""FastAPI application setup."""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..errors import MessengerError
from ..validation import field_errors
from ..logging_config import get_logger
from .routes import messages, realtime, users

logger = get_logger(__name__)


def _error_body(message: str, errors: dict | None = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def register_exception_handlers(fastapi_app: FastAPI) -> None:
    """Render errors as ``{"success": false, "message": ...}`` envelopes."""

    @fastapi_app.exception_handler(MessengerError)
    async def messenger_error_handler(
        request: Request, exc: MessengerError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc.message
            )
        else:
            logger.debug(
                "%s %s rejected: %s", request.method, request.url.path, exc.message
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, getattr(exc, "errors", None)),
        )

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=_error_body("Validation error", field_errors(exc.errors())),
        )

    @fastapi_app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500, content=_error_body("Internal server error")
        )


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or Application()
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        # Startup
        await application.start()
        yield
        # Shutdown
        await application.stop()

    fastapi_app = FastAPI(
        title="Messenger API",
        description="Real-time messaging backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=application.settings.client_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(fastapi_app)

    @fastapi_app.get("/health")
    async def health() -> dict:
        """Liveness probe."""
        return {
            "success": True,
            "message": "Server is healthy",
            "uptime": round(time.monotonic() - started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Include routers
    fastapi_app.include_router(users.create_users_router(application))
    fastapi_app.include_router(messages.create_messages_router(application))
    fastapi_app.include_router(realtime.create_realtime_router(application))

    return fastapi_app
