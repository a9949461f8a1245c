"""API endpoint modules for version 1."""

from .connections import router as connections_router
from .messages import router as messages_router
from .socket import router as socket_router
from .system import router as system_router

__all__ = [
    "socket_router",
    "connections_router",
    "messages_router",
    "system_router",
]
