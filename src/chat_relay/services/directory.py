"""Read path answering "who is currently connected"."""

from __future__ import annotations

from chat_relay.repositories.base import ChatStore
from chat_relay.schemas.records import ConnectionRecord


class ConnectionDirectory:
    """Full-scan view over the connection registry.

    Holds no state: every call re-reads the store, so broadcast cost grows
    linearly with live connections. A partitioned or indexed directory can
    replace this class without touching the router or broadcaster.
    """

    def __init__(self, store: ChatStore) -> None:
        self.store = store

    async def snapshot(self) -> list[ConnectionRecord]:
        """Return a fresh list of every non-expired registry record."""
        return await self.store.list_connections()

    async def find(self, connection_id: str) -> ConnectionRecord | None:
        """Return the record for ``connection_id`` by scanning a fresh snapshot."""
        for record in await self.snapshot():
            if record.connection_id == connection_id:
                return record
        return None
