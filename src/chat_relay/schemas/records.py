"""Immutable domain records exchanged between the store and the services."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ConnectionRecord(BaseModel):
    """One live channel as seen by the connection registry."""

    connection_id: str = Field(..., serialization_alias="connectionId")
    user_id: str = Field(..., serialization_alias="userId")
    username: str
    connected_at: int = Field(..., description="Epoch milliseconds", serialization_alias="connectedAt")
    expires_at: int = Field(..., description="Epoch seconds", serialization_alias="expiresAt")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    def is_expired(self, now_seconds: int) -> bool:
        """Return True once ``expires_at`` is at or before ``now_seconds``."""
        return self.expires_at <= now_seconds


class ChatMessage(BaseModel):
    """A persisted chat message.

    ``sort_key`` is the ordering key: ascending ``sort_key`` is ascending
    ``created_at`` within a room.
    """

    room_id: str = Field(..., serialization_alias="roomId")
    sort_key: str = Field(..., serialization_alias="sortKey")
    message_id: str = Field(..., serialization_alias="messageId")
    user_id: str = Field(..., serialization_alias="userId")
    username: str
    content: str
    created_at: int = Field(..., description="Epoch milliseconds", serialization_alias="createdAt")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    def to_wire(self) -> dict[str, object]:
        """Return the camelCase JSON form sent to clients."""
        return self.model_dump(mode="json", by_alias=True)
