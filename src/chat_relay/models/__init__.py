# src/chat_relay/models/__init__.py
"""SQLAlchemy models for the chat relay."""

from .connection import Connection
from .message import Message

__all__ = ["Connection", "Message"]
