"""Dispatcher for the four channel lifecycle events.

The router is stateless: each call is a one-shot transaction against the
store, the connection directory and the broadcaster it was built with.

=============  ==========================================================
Event          Effect
=============  ==========================================================
connect        write a registry record that expires after the TTL
disconnect     delete the registry record (absent records are fine)
sendMessage    validate, resolve sender from the registry, persist, fan out
getMessages    read room history and push it to the requester only
=============  ==========================================================

Every call returns a ``RouteResponse``. Validation problems become 400
responses carrying the rejection text; infrastructure faults become 500
responses with a generic per-operation message.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chat_relay.core.errors import (
    DeliveryFailed,
    RelayError,
    ValidationError,
    connection_not_found,
    malformed_payload,
)
from chat_relay.db.time import epoch_millis
from chat_relay.repositories.base import ChatStore, normalize_content
from chat_relay.schemas.events import (
    GetMessagesEvent,
    GetMessagesPayload,
    OutboundEnvelope,
    SendMessagePayload,
    decode_event,
)
from chat_relay.schemas.records import ChatMessage, ConnectionRecord

from .broadcaster import Broadcaster
from .delivery import DeliveryOutcome
from .directory import ConnectionDirectory

# Configure logger for this module
logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_INTERNAL_SERVER_ERROR = 500

ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_USERNAME = "Anonymous"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


@dataclass(frozen=True)
class RouteResponse:
    """RPC-style completion of one routed event."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code < HTTP_BAD_REQUEST


class MessageRouter:
    """Ties registry mutation, message persistence and fan-out together."""

    def __init__(
        self,
        store: ChatStore,
        directory: ConnectionDirectory,
        broadcaster: Broadcaster,
        *,
        default_room: str = "global",
        default_limit: int = 50,
        max_limit: int = 100,
        connection_ttl_seconds: int = 24 * 60 * 60,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self.store = store
        self.directory = directory
        self.broadcaster = broadcaster
        self.default_room = default_room
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.connection_ttl_seconds = connection_ttl_seconds
        self._clock = clock

    # --- lifecycle events -----------------------------------------------------

    async def connect(
        self,
        connection_id: str,
        user_id: str | None = None,
        username: str | None = None,
    ) -> RouteResponse:
        """Register a freshly opened channel.

        Missing or empty identity values fall back to the anonymous user.
        """
        now = self._clock()
        record = ConnectionRecord(
            connection_id=connection_id,
            user_id=user_id or ANONYMOUS_USER_ID,
            username=username or ANONYMOUS_USERNAME,
            connected_at=now,
            expires_at=now // 1000 + self.connection_ttl_seconds,
        )
        try:
            await self.store.put_connection(record)
        except Exception as exc:
            return self._failed("Failed to connect", "connect", connection_id, exc)

        logger.info("Connection %s saved for user %s", connection_id, record.username)
        return RouteResponse(HTTP_OK, {"success": True})

    async def disconnect(self, connection_id: str) -> RouteResponse:
        """Forget a closed channel. Succeeds whether or not a record existed."""
        try:
            await self.store.delete_connection(connection_id)
        except Exception as exc:
            return self._failed("Failed to disconnect", "disconnect", connection_id, exc)

        logger.info("Connection %s removed", connection_id)
        return RouteResponse(HTTP_OK, {"success": True})

    async def send_message(
        self,
        connection_id: str,
        payload: SendMessagePayload | Mapping[str, Any] | None = None,
    ) -> RouteResponse:
        """Persist a message from ``connection_id`` and broadcast it.

        The sender's identity always comes from the registry record; only the
        content and room come from the payload.
        """
        try:
            data = _coerce(SendMessagePayload, payload)
            content = normalize_content(data.content)

            sender = await self.directory.find(connection_id)
            if sender is None:
                raise connection_not_found()

            message = await self.store.put_message(
                data.room_id or self.default_room,
                sender.user_id,
                sender.username,
                content,
            )
            await self.broadcaster.broadcast(OutboundEnvelope.new_message(message))
        except ValidationError as exc:
            return _rejected(exc)
        except Exception as exc:
            return self._failed("Failed to send message", "sendMessage", connection_id, exc)

        return RouteResponse(HTTP_OK, {"success": True, "messageId": message.message_id})

    async def get_messages(
        self,
        connection_id: str,
        payload: GetMessagesPayload | Mapping[str, Any] | None = None,
    ) -> RouteResponse:
        """Push a room's history to ``connection_id`` and acknowledge separately."""
        try:
            data = _coerce(GetMessagesPayload, payload)
            messages = await self.room_history(data.room_id, data.limit)
            outcome = await self.broadcaster.send_to(
                connection_id, OutboundEnvelope.message_history(messages)
            )
            if outcome is DeliveryOutcome.FAILED:
                raise DeliveryFailed(f"History delivery to {connection_id} failed")
        except ValidationError as exc:
            return _rejected(exc)
        except Exception as exc:
            return self._failed("Failed to get messages", "getMessages", connection_id, exc)

        return RouteResponse(HTTP_OK, {"success": True})

    async def dispatch(
        self,
        connection_id: str,
        raw: str | bytes | Mapping[str, Any] | None,
    ) -> RouteResponse:
        """Decode one inbound frame and route it to its handler."""
        try:
            event = decode_event(raw)
        except ValidationError as exc:
            return _rejected(exc)

        if isinstance(event, GetMessagesEvent):
            return await self.get_messages(connection_id, event.data)
        return await self.send_message(connection_id, event.data)

    # --- history --------------------------------------------------------------

    def clamp_limit(self, limit: int | None) -> int:
        """Return ``limit`` clamped to ``[1, max_limit]``; ``None`` means the default."""
        if limit is None:
            limit = self.default_limit
        return max(1, min(int(limit), self.max_limit))

    async def room_history(self, room_id: str | None = None, limit: int | None = None) -> list[ChatMessage]:
        """Return the most recent messages of a room, oldest first."""
        return await self.store.query_messages_by_room(
            room_id or self.default_room, self.clamp_limit(limit)
        )

    async def user_history(self, user_id: str, limit: int | None = None) -> list[ChatMessage]:
        """Return the most recent messages by ``user_id`` across rooms, oldest first."""
        return await self.store.query_messages_by_user(user_id, self.clamp_limit(limit))

    def _failed(
        self, message: str, operation: str, connection_id: str, exc: Exception
    ) -> RouteResponse:
        if isinstance(exc, RelayError):
            logger.error("Error handling %s for %s: %s", operation, connection_id, exc)
            reason = exc.reason
        else:
            logger.exception("Unexpected error handling %s for %s", operation, connection_id)
            reason = RelayError.reason
        return RouteResponse(HTTP_INTERNAL_SERVER_ERROR, {"error": message}, reason)


def _rejected(exc: ValidationError) -> RouteResponse:
    return RouteResponse(HTTP_BAD_REQUEST, {"error": exc.message}, exc.reason)


def _coerce(model: type[PayloadT], payload: PayloadT | Mapping[str, Any] | None) -> PayloadT:
    if isinstance(payload, model):
        return payload
    if payload is None:
        payload = {}
    elif isinstance(payload, Mapping):
        payload = dict(payload)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise malformed_payload() from exc
