"""Store contract shared by every connection-registry / message-log backing."""

from __future__ import annotations

import itertools
import secrets
from typing import Protocol

from chat_relay.core.errors import empty_content
from chat_relay.schemas.records import ChatMessage, ConnectionRecord

__all__ = ["ChatStore", "new_message_keys", "normalize_content"]

# Width of the millisecond prefix in sort keys; covers every timestamp until
# the year 2286, and keeps small (test) clocks ordered as well.
SORT_KEY_TIME_WIDTH = 13

_SEQUENCE = itertools.count(1)


class ChatStore(Protocol):
    """Durable store for the connection registry and the message log.

    Every method may raise ``StoreUnavailable``; implementations never retry.
    """

    async def put_connection(self, record: ConnectionRecord) -> None: ...

    async def delete_connection(self, connection_id: str) -> None: ...

    async def list_connections(self) -> list[ConnectionRecord]: ...

    async def purge_expired_connections(self) -> int: ...

    async def put_message(
        self, room_id: str, user_id: str, username: str, content: str
    ) -> ChatMessage: ...

    async def query_messages_by_room(self, room_id: str, limit: int) -> list[ChatMessage]: ...

    async def query_messages_by_user(self, user_id: str, limit: int) -> list[ChatMessage]: ...

    async def ping(self) -> None: ...

    async def close(self) -> None: ...


def new_message_keys(created_at: int) -> tuple[str, str]:
    """Return ``(message_id, sort_key)`` for a message created at ``created_at``.

    The process-wide sequence keeps messages created within the same
    millisecond in insertion order.
    """
    message_id = f"{created_at}-{next(_SEQUENCE):010d}{secrets.token_hex(3)}"
    sort_key = f"{created_at:0{SORT_KEY_TIME_WIDTH}d}#{message_id}"
    return message_id, sort_key


def normalize_content(content: object) -> str:
    """Return trimmed content or raise the empty-content rejection."""
    if not isinstance(content, str) or not content.strip():
        raise empty_content()
    return content.strip()
