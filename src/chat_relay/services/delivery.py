"""Delivery channels: how one outbound frame reaches one connection.

A channel exposes a single ``send(connection_id, payload)`` operation whose
outcome is one of:

- ``DELIVERED`` - the frame was handed to the transport
- ``GONE`` - the transport confirmed the connection no longer exists
- ``FAILED`` - anything else; the connection may still be alive

``LocalSocketChannel`` covers sockets held by this process,
``HttpDeliveryChannel`` a gateway that exposes a post-to-connection management
API, and ``ClusterDeliveryChannel`` several relays sharing one registry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from chat_relay.core.errors import DeliveryChannelError
from chat_relay.core.settings import Settings

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status code a gateway uses to signal a vanished connection
HTTP_GONE = 410
# HTTP status code a relay uses for a connection it does not hold
HTTP_NOT_HELD = 404

TOKEN_HEADER = "X-Relay-Token"


class DeliveryOutcome(str, Enum):
    """Result of a single delivery attempt."""

    DELIVERED = "delivered"
    GONE = "gone"
    FAILED = "failed"


class DeliveryChannel(Protocol):
    """Transport-facing delivery contract."""

    async def send(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome: ...

    async def aclose(self) -> None: ...


@dataclass
class _Attachment:
    websocket: WebSocket
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class LocalSocketChannel:
    """Registry of WebSockets held by this process.

    Writes to one socket are serialized so that acknowledgements and broadcast
    frames never interleave.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, _Attachment] = {}

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = _Attachment(websocket)

    def detach(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    def __len__(self) -> int:
        return len(self._sockets)

    async def send(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome:
        attachment = self._sockets.get(connection_id)
        if attachment is None:
            return DeliveryOutcome.GONE

        websocket = attachment.websocket
        states = (websocket.client_state, websocket.application_state)
        if WebSocketState.DISCONNECTED in states:
            return DeliveryOutcome.GONE
        if any(state != WebSocketState.CONNECTED for state in states):
            # Handshake still in progress.
            return DeliveryOutcome.FAILED

        try:
            async with attachment.lock:
                await websocket.send_json(dict(payload))
        except WebSocketDisconnect:
            return DeliveryOutcome.GONE
        except RuntimeError as exc:
            # Starlette raises RuntimeError for writes after close.
            logger.debug("Socket %s closed during send: %s", connection_id, exc)
            return DeliveryOutcome.GONE
        except Exception as exc:
            logger.warning("Delivery to %s failed: %s", connection_id, exc)
            return DeliveryOutcome.FAILED
        return DeliveryOutcome.DELIVERED

    async def aclose(self) -> None:
        self._sockets.clear()


class HttpDeliveryChannel:
    """Deliver frames through a gateway's ``/@connections/{id}`` endpoint."""

    def __init__(
        self,
        endpoint: str | None,
        *,
        timeout_seconds: float = 10.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not endpoint:
            raise DeliveryChannelError("DELIVERY_ENDPOINT is required for http delivery")
        self.endpoint = endpoint.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                headers = {TOKEN_HEADER: self.token} if self.token else None
                self._client = httpx.AsyncClient(
                    base_url=self.endpoint,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    headers=headers,
                    transport=self._transport,
                )
        return self._client

    async def send(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome:
        client = await self._ensure_client()
        path = f"/@connections/{quote(connection_id, safe='')}"
        try:
            response = await client.post(path, json=dict(payload))
        except httpx.HTTPError as exc:
            logger.warning("Delivery to %s failed: %s", connection_id, exc)
            return DeliveryOutcome.FAILED

        if response.status_code == HTTP_GONE:
            return DeliveryOutcome.GONE
        if response.is_success:
            return DeliveryOutcome.DELIVERED
        if response.status_code == HTTP_NOT_HELD:
            logger.debug("%s does not hold %s", self.endpoint, connection_id)
            return DeliveryOutcome.FAILED

        logger.warning(
            "Delivery to %s rejected with status %d", connection_id, response.status_code
        )
        return DeliveryOutcome.FAILED

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class ClusterDeliveryChannel:
    """Deliver to sockets held by this process or by any peer relay.

    Peers answer 404 for connections they do not hold, which maps to
    ``FAILED``; a connection is only reported ``GONE`` when the process
    holding it says so, or when no peer is configured at all.
    """

    def __init__(self, local: LocalSocketChannel, peers: list[HttpDeliveryChannel]) -> None:
        self.local = local
        self.peers = peers

    async def send(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome:
        if self.local.is_attached(connection_id) or not self.peers:
            return await self.local.send(connection_id, payload)

        outcomes = await asyncio.gather(
            *(peer.send(connection_id, payload) for peer in self.peers)
        )
        if DeliveryOutcome.DELIVERED in outcomes:
            return DeliveryOutcome.DELIVERED
        if DeliveryOutcome.GONE in outcomes:
            return DeliveryOutcome.GONE
        return DeliveryOutcome.FAILED

    async def aclose(self) -> None:
        for peer in self.peers:
            await peer.aclose()


def build_delivery_channel(settings: Settings, local: LocalSocketChannel) -> DeliveryChannel:
    """Return the delivery channel selected by ``DELIVERY_BACKEND``.

    ``http`` hands every frame to an external gateway that holds all sockets.
    ``cluster`` delivers locally when possible and otherwise asks each relay
    listed in ``DELIVERY_PEERS``.

    Raises:
        DeliveryChannelError: If the selected backend is misconfigured.
    """
    if settings.delivery_backend == "local":
        return local
    if settings.delivery_backend == "http":
        return HttpDeliveryChannel(
            settings.delivery_endpoint,
            timeout_seconds=settings.delivery_timeout_seconds,
            token=settings.management_token,
        )
    if settings.delivery_backend == "cluster":
        if not settings.delivery_peers:
            raise DeliveryChannelError("DELIVERY_PEERS is required for cluster delivery")
        peers = [
            HttpDeliveryChannel(
                peer,
                timeout_seconds=settings.delivery_timeout_seconds,
                token=settings.management_token,
            )
            for peer in settings.delivery_peers
        ]
        return ClusterDeliveryChannel(local, peers)
    raise DeliveryChannelError(f"Unknown delivery backend {settings.delivery_backend!r}")
