"""Fan-out delivery of outbound frames to every live connection.

Each broadcast takes a fresh directory snapshot and issues one concurrent
delivery attempt per recipient. The call returns only after every attempt has
settled; a failed or slow recipient never blocks the others. A ``GONE``
outcome removes the recipient from the registry, any other failure leaves it
in place.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from chat_relay.core.errors import StoreUnavailable
from chat_relay.repositories.base import ChatStore
from chat_relay.schemas.events import OutboundEnvelope

from .delivery import DeliveryChannel, DeliveryOutcome
from .directory import ConnectionDirectory

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class BroadcastReport:
    """Per-recipient outcomes of one broadcast."""

    delivered: list[str] = field(default_factory=list)
    gone: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.gone) + len(self.failed)

    def record(self, connection_id: str, outcome: DeliveryOutcome) -> None:
        if outcome is DeliveryOutcome.DELIVERED:
            self.delivered.append(connection_id)
        elif outcome is DeliveryOutcome.GONE:
            self.gone.append(connection_id)
        else:
            self.failed.append(connection_id)


class Broadcaster:
    """Settle-all fan-out over the connection directory."""

    def __init__(
        self,
        directory: ConnectionDirectory,
        store: ChatStore,
        channel: DeliveryChannel,
        *,
        delivery_timeout_seconds: float = 10.0,
    ) -> None:
        self.directory = directory
        self.store = store
        self.channel = channel
        self.delivery_timeout_seconds = delivery_timeout_seconds

    async def broadcast(
        self,
        envelope: OutboundEnvelope,
        exclude_connection_id: str | None = None,
    ) -> BroadcastReport:
        """Deliver ``envelope`` to every current recipient.

        Args:
            envelope: Frame to deliver.
            exclude_connection_id: Optional recipient to skip.

        Returns:
            Outcome of every attempted delivery.

        Raises:
            StoreUnavailable: If the recipient snapshot cannot be read.
        """
        recipients = await self.directory.snapshot()
        targets = [
            record.connection_id
            for record in recipients
            if record.connection_id != exclude_connection_id
        ]
        payload = envelope.to_wire()

        outcomes = await asyncio.gather(
            *(self._deliver(connection_id, payload) for connection_id in targets),
            return_exceptions=True,
        )

        report = BroadcastReport()
        for connection_id, outcome in zip(targets, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Delivery task for %s crashed: %r", connection_id, outcome)
                outcome = DeliveryOutcome.FAILED
            report.record(connection_id, outcome)

        logger.info(
            "Broadcast %s to %d recipients: %d delivered, %d gone, %d failed",
            envelope.type,
            report.attempted,
            len(report.delivered),
            len(report.gone),
            len(report.failed),
        )
        return report

    async def send_to(self, connection_id: str, envelope: OutboundEnvelope) -> DeliveryOutcome:
        """Deliver ``envelope`` to a single connection with the same gone handling."""
        return await self._deliver(connection_id, envelope.to_wire())

    async def _deliver(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome:
        try:
            outcome = await asyncio.wait_for(
                self.channel.send(connection_id, payload),
                timeout=self.delivery_timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Delivery to %s timed out after %.1fs", connection_id, self.delivery_timeout_seconds
            )
            return DeliveryOutcome.FAILED
        except Exception as exc:
            logger.warning("Delivery to %s failed: %s", connection_id, exc)
            return DeliveryOutcome.FAILED

        if outcome is DeliveryOutcome.GONE:
            await self._forget(connection_id)
        return outcome

    async def _forget(self, connection_id: str) -> None:
        logger.info("Connection %s is gone, removing from registry", connection_id)
        try:
            await self.store.delete_connection(connection_id)
        except StoreUnavailable as exc:
            logger.warning("Could not remove gone connection %s: %s", connection_id, exc)
