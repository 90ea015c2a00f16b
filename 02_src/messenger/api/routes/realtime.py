"""WebSocket route."""

from fastapi import APIRouter, WebSocket

from ...app import IApplication
from ...errors import AuthenticationError
from ...logging_config import get_logger
from ...realtime import WebSocketConnection
from ..deps import token_from

logger = get_logger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


def create_realtime_router(app: IApplication) -> APIRouter:
    """Create realtime router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/socket")
    async def socket(websocket: WebSocket) -> None:
        """Authenticate, then hand the connection to the gateway."""
        token = token_from(
            websocket.cookies,
            websocket.headers,
            websocket.query_params.get("token"),
        )
        if not token:
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        try:
            user = await app.users.authenticate(token)
        except AuthenticationError as e:
            logger.info("Rejected socket connection: %s", e.message)
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        await websocket.accept()
        await app.gateway.serve(WebSocketConnection(websocket), user.id)

    return router
