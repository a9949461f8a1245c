"""Inbound and outbound channel envelopes.

Inbound frames are ``{"action": ..., "data": {...}}`` and are decoded into a
tagged union keyed on ``action``. Outbound frames are
``{"type": "newMessage" | "messageHistory", "data": ...}``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from chat_relay.core.errors import malformed_payload, unknown_action

from .records import ChatMessage

SEND_MESSAGE = "sendMessage"
GET_MESSAGES = "getMessages"
ACTIONS = frozenset({SEND_MESSAGE, GET_MESSAGES})

NEW_MESSAGE = "newMessage"
MESSAGE_HISTORY = "messageHistory"


class SendMessagePayload(BaseModel):
    """Data carried by a ``sendMessage`` request.

    ``content`` is left untyped; missing, null and non-string values all get
    the same rejection from the router.
    """

    content: Any = None
    room_id: str | None = Field(default=None, validation_alias=AliasChoices("roomId", "room_id"))

    model_config = ConfigDict(extra="ignore", frozen=True)


class GetMessagesPayload(BaseModel):
    """Data carried by a ``getMessages`` request."""

    room_id: str | None = Field(default=None, validation_alias=AliasChoices("roomId", "room_id"))
    limit: int | None = None

    model_config = ConfigDict(extra="ignore", frozen=True)


class _InboundEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("data", mode="before", check_fields=False)
    @classmethod
    def _missing_data_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class SendMessageEvent(_InboundEvent):
    action: Literal["sendMessage"]
    data: SendMessagePayload = Field(default_factory=SendMessagePayload)


class GetMessagesEvent(_InboundEvent):
    action: Literal["getMessages"]
    data: GetMessagesPayload = Field(default_factory=GetMessagesPayload)


InboundEvent = Annotated[SendMessageEvent | GetMessagesEvent, Field(discriminator="action")]

_INBOUND_ADAPTER: TypeAdapter[SendMessageEvent | GetMessagesEvent] = TypeAdapter(InboundEvent)


def decode_event(raw: str | bytes | Mapping[str, Any] | None) -> SendMessageEvent | GetMessagesEvent:
    """Decode one inbound frame into its tagged event.

    Raises:
        ValidationError: ``unknown_action`` when the action tag is missing or
            unrecognized, ``malformed_payload`` when the frame is not a JSON
            object or its data does not fit the action's schema.
    """
    if isinstance(raw, str | bytes):
        try:
            raw = json.loads(raw or "{}")
        except ValueError as exc:
            raise malformed_payload() from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise malformed_payload()

    action = raw.get("action")
    if not isinstance(action, str) or action not in ACTIONS:
        raise unknown_action()

    try:
        return _INBOUND_ADAPTER.validate_python(dict(raw))
    except PydanticValidationError as exc:
        raise malformed_payload() from exc


class OutboundEnvelope(BaseModel):
    """Frame pushed to a channel by the broadcaster."""

    type: Literal["newMessage", "messageHistory"]
    data: ChatMessage | list[ChatMessage]

    model_config = ConfigDict(frozen=True)

    @classmethod
    def new_message(cls, message: ChatMessage) -> OutboundEnvelope:
        return cls(type=NEW_MESSAGE, data=message)

    @classmethod
    def message_history(cls, messages: list[ChatMessage]) -> OutboundEnvelope:
        return cls(type=MESSAGE_HISTORY, data=list(messages))

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase form."""
        return self.model_dump(mode="json", by_alias=True)
