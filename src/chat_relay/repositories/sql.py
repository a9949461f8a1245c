"""SQLAlchemy-backed store for the connection registry and message log."""
from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import ColumnElement, delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chat_relay.core.errors import StoreUnavailable
from chat_relay.db.session import build_session_factory
from chat_relay.db.time import epoch_millis
from chat_relay.models import Connection, Message
from chat_relay.schemas.records import ChatMessage, ConnectionRecord

from .base import new_message_keys, normalize_content

__all__ = ["SqlChatStore"]

logger = logging.getLogger(__name__)


class SqlChatStore:
    """Thin wrapper around database access for registry and message entities.

    Each operation runs in its own short session and commits a single item;
    no operation spans both tables.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        """Initialize the store with an async engine and optional session factory."""
        self.engine = engine
        self.session_factory = session_factory or build_session_factory(engine)
        self._clock = clock

    async def put_connection(self, record: ConnectionRecord) -> None:
        """Insert or overwrite the registry row for ``record.connection_id``."""
        try:
            async with self.session_factory() as session:
                await session.merge(
                    Connection(
                        connection_id=record.connection_id,
                        user_id=record.user_id,
                        username=record.username,
                        connected_at=record.connected_at,
                        expires_at=record.expires_at,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to save connection {record.connection_id}") from exc

    async def delete_connection(self, connection_id: str) -> None:
        """Remove a registry row; absent rows are not an error."""
        try:
            async with self.session_factory() as session:
                await session.execute(
                    delete(Connection).where(Connection.connection_id == connection_id)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to delete connection {connection_id}") from exc

    async def list_connections(self) -> list[ConnectionRecord]:
        """Return every non-expired registry row.

        This is a full scan of the registry; its cost grows with the number of
        live connections.
        """
        now_seconds = self._clock() // 1000
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Connection).where(Connection.expires_at > now_seconds)
                )
                rows = list(result.scalars())
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Failed to list connections") from exc
        return [ConnectionRecord.model_validate(row) for row in rows]

    async def purge_expired_connections(self) -> int:
        """Delete registry rows whose expiry has passed and return how many."""
        now_seconds = self._clock() // 1000
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(Connection).where(Connection.expires_at <= now_seconds)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Failed to purge expired connections") from exc
        return int(result.rowcount or 0)

    async def put_message(
        self, room_id: str, user_id: str, username: str, content: str
    ) -> ChatMessage:
        """Persist a new message and return it with its generated keys.

        Args:
            room_id: Partition the message belongs to.
            user_id: Sender identity taken from the registry.
            username: Sender display name taken from the registry.
            content: Message text; trimmed before storage.

        Raises:
            ValidationError: If ``content`` is empty after trimming.
            StoreUnavailable: If the insert fails.
        """
        text_content = normalize_content(content)
        created_at = self._clock()
        message_id, sort_key = new_message_keys(created_at)
        row = Message(
            room_id=room_id,
            sort_key=sort_key,
            message_id=message_id,
            user_id=user_id,
            username=username,
            content=text_content,
            created_at=created_at,
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to save message in room {room_id}") from exc
        return ChatMessage.model_validate(row)

    async def query_messages_by_room(self, room_id: str, limit: int) -> list[ChatMessage]:
        """Return the ``limit`` most recent messages of a room, oldest first."""
        return await self._query_newest(Message.room_id == room_id, limit)

    async def query_messages_by_user(self, user_id: str, limit: int) -> list[ChatMessage]:
        """Return the ``limit`` most recent messages by a user across rooms, oldest first."""
        return await self._query_newest(Message.user_id == user_id, limit)

    async def _query_newest(
        self, condition: ColumnElement[bool], limit: int
    ) -> list[ChatMessage]:
        if limit <= 0:
            return []
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Message)
                    .where(condition)
                    .order_by(Message.sort_key.desc())
                    .limit(limit)
                )
                rows = list(result.scalars())
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Failed to query messages") from exc
        rows.reverse()
        return [ChatMessage.model_validate(row) for row in rows]

    async def ping(self) -> None:
        """Run a trivial statement to prove the database answers."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StoreUnavailable("Database did not answer") from exc

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self.engine.dispose()
        logger.debug("Disposed database engine")
