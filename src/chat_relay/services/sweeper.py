"""Background expiry of stale connection registry records.

Disconnect events are not guaranteed (a client can vanish without a close
handshake), so registry records carry an expiry. Reads already ignore expired
records; this worker deletes them so the registry does not grow without
bound.
"""

from __future__ import annotations

import asyncio
import logging

from chat_relay.core.errors import StoreUnavailable
from chat_relay.repositories.base import ChatStore

# Configure logger for this module
logger = logging.getLogger(__name__)


class ConnectionSweeper:
    """Periodically purges expired connection records from the store."""

    def __init__(self, store: ChatStore, *, interval_seconds: float = 300.0) -> None:
        self.store = store
        self.interval_seconds = max(0.1, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop and wait for it to exit."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def sweep_once(self) -> int:
        """Purge expired records once and return how many were removed."""
        removed = await self.store.purge_expired_connections()
        if removed:
            logger.info("Purged %d expired connections", removed)
        return removed

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.sweep_once()
            except StoreUnavailable as e:
                logger.warning("ConnectionSweeper could not reach the store: %s", e)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("ConnectionSweeper encountered network error: %s", e)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error(
                    "ConnectionSweeper encountered data processing error: %s", e, exc_info=True
                )
            except Exception as e:
                logger.error("ConnectionSweeper sweep failed: %s", e, exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue
