"""Version 1 API endpoints."""

from .endpoints import (
    connections_router,
    messages_router,
    socket_router,
    system_router,
)

__all__ = [
    "socket_router",
    "connections_router",
    "messages_router",
    "system_router",
]
