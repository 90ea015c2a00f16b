"""Realtime module."""

from .broadcaster import Broadcaster, Connection, IBroadcaster
from .gateway import SocketGateway, WebSocketConnection

__all__ = [
    "Broadcaster",
    "Connection",
    "IBroadcaster",
    "SocketGateway",
    "WebSocketConnection",
]
