"""Process-local store backing.

Single-process only. Useful for local development and tests.
"""

from __future__ import annotations

import asyncio
import bisect
from collections import defaultdict
from collections.abc import Callable

from chat_relay.db.time import epoch_millis
from chat_relay.schemas.records import ChatMessage, ConnectionRecord

from .base import new_message_keys, normalize_content

__all__ = ["InMemoryChatStore"]


class InMemoryChatStore:
    """Dictionary-backed implementation of ``ChatStore``."""

    def __init__(self, clock: Callable[[], int] = epoch_millis) -> None:
        self._clock = clock
        self._connections: dict[str, ConnectionRecord] = {}
        self._rooms: dict[str, list[ChatMessage]] = defaultdict(list)
        self._by_user: dict[str, list[ChatMessage]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def put_connection(self, record: ConnectionRecord) -> None:
        async with self._lock:
            self._connections[record.connection_id] = record

    async def delete_connection(self, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)

    async def list_connections(self) -> list[ConnectionRecord]:
        now_seconds = self._clock() // 1000
        async with self._lock:
            return [
                record
                for record in self._connections.values()
                if not record.is_expired(now_seconds)
            ]

    async def purge_expired_connections(self) -> int:
        now_seconds = self._clock() // 1000
        async with self._lock:
            expired = [
                connection_id
                for connection_id, record in self._connections.items()
                if record.is_expired(now_seconds)
            ]
            for connection_id in expired:
                del self._connections[connection_id]
        return len(expired)

    async def put_message(
        self, room_id: str, user_id: str, username: str, content: str
    ) -> ChatMessage:
        text = normalize_content(content)
        created_at = self._clock()
        message_id, sort_key = new_message_keys(created_at)
        message = ChatMessage(
            room_id=room_id,
            sort_key=sort_key,
            message_id=message_id,
            user_id=user_id,
            username=username,
            content=text,
            created_at=created_at,
        )
        async with self._lock:
            bisect.insort(self._rooms[room_id], message, key=_sort_key)
            bisect.insort(self._by_user[user_id], message, key=_sort_key)
        return message

    async def query_messages_by_room(self, room_id: str, limit: int) -> list[ChatMessage]:
        async with self._lock:
            return _newest(self._rooms.get(room_id, []), limit)

    async def query_messages_by_user(self, user_id: str, limit: int) -> list[ChatMessage]:
        async with self._lock:
            return _newest(self._by_user.get(user_id, []), limit)

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None


def _sort_key(message: ChatMessage) -> str:
    return message.sort_key


def _newest(messages: list[ChatMessage], limit: int) -> list[ChatMessage]:
    """Return the ``limit`` most recent messages, oldest first."""
    if limit <= 0:
        return []
    return list(messages[-limit:])
