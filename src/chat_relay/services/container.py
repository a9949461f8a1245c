"""Explicit wiring of the relay's collaborators.

The process entry point builds one ``RelayServices`` and owns its lifecycle;
nothing in the relay is created lazily on first use.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from chat_relay.core.settings import Settings
from chat_relay.db.session import build_engine, create_tables
from chat_relay.db.time import epoch_millis
from chat_relay.repositories import ChatStore, InMemoryChatStore, SqlChatStore

from .broadcaster import Broadcaster
from .delivery import DeliveryChannel, LocalSocketChannel, build_delivery_channel
from .directory import ConnectionDirectory
from .router import MessageRouter
from .sweeper import ConnectionSweeper

logger = logging.getLogger(__name__)


@dataclass
class RelayServices:
    """Everything a transport needs to serve channels."""

    settings: Settings
    store: ChatStore
    local_channel: LocalSocketChannel
    channel: DeliveryChannel
    directory: ConnectionDirectory
    broadcaster: Broadcaster
    router: MessageRouter
    sweeper: ConnectionSweeper | None = None
    engine: AsyncEngine | None = None

    async def startup(self) -> None:
        """Prepare storage and start background workers."""
        if self.engine is not None and self.settings.database_auto_create:
            await create_tables(self.engine)
        if self.sweeper is not None:
            await self.sweeper.start()
        logger.info(
            "Relay started (store=%s, delivery=%s)",
            type(self.store).__name__,
            type(self.channel).__name__,
        )

    async def shutdown(self) -> None:
        """Stop background workers and release connections.

        The channel and the store are released even if an earlier step raises.
        """
        try:
            if self.sweeper is not None:
                await self.sweeper.stop()
        finally:
            try:
                if self.channel is not self.local_channel:
                    await self.channel.aclose()
                await self.local_channel.aclose()
            finally:
                await self.store.close()


def build_services(
    settings: Settings,
    *,
    store: ChatStore | None = None,
    channel: DeliveryChannel | None = None,
    clock: Callable[[], int] = epoch_millis,
) -> RelayServices:
    """Construct the store, directory, broadcaster and router from ``settings``.

    ``store`` and ``channel`` override the configured backends.

    Raises:
        DeliveryChannelError: If the configured delivery backend is unusable.
    """
    engine: AsyncEngine | None = None
    if store is None:
        if settings.store_backend == "memory":
            store = InMemoryChatStore(clock=clock)
        else:
            engine = build_engine(settings.database_url, echo=settings.sql_debug)
            store = SqlChatStore(engine, clock=clock)

    local_channel = LocalSocketChannel()
    if channel is None:
        channel = build_delivery_channel(settings, local_channel)

    directory = ConnectionDirectory(store)
    broadcaster = Broadcaster(
        directory,
        store,
        channel,
        delivery_timeout_seconds=settings.delivery_timeout_seconds,
    )
    router = MessageRouter(
        store,
        directory,
        broadcaster,
        default_room=settings.default_room,
        default_limit=settings.history_default_limit,
        max_limit=settings.history_max_limit,
        connection_ttl_seconds=settings.connection_ttl_seconds,
        clock=clock,
    )
    sweeper = None
    if settings.connection_sweep_enabled:
        sweeper = ConnectionSweeper(
            store, interval_seconds=settings.connection_sweep_interval_seconds
        )

    return RelayServices(
        settings=settings,
        store=store,
        local_channel=local_channel,
        channel=channel,
        directory=directory,
        broadcaster=broadcaster,
        router=router,
        sweeper=sweeper,
        engine=engine,
    )
