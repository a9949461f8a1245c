"""Store backings for the connection registry and message log."""

from .base import ChatStore
from .memory import InMemoryChatStore
from .sql import SqlChatStore

__all__ = ["ChatStore", "InMemoryChatStore", "SqlChatStore"]
