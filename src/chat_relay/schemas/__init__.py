"""Pydantic schemas for records and channel envelopes."""

from .events import (
    GetMessagesEvent,
    GetMessagesPayload,
    OutboundEnvelope,
    SendMessageEvent,
    SendMessagePayload,
    decode_event,
)
from .records import ChatMessage, ConnectionRecord

__all__ = [
    "ChatMessage",
    "ConnectionRecord",
    "GetMessagesEvent",
    "GetMessagesPayload",
    "OutboundEnvelope",
    "SendMessageEvent",
    "SendMessagePayload",
    "decode_event",
]
