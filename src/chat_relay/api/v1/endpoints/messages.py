"""Read-only message history endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status

from chat_relay.core.errors import StoreUnavailable
from chat_relay.schemas.records import ChatMessage

from ..dependencies import ServicesDep

router = APIRouter(tags=["messages"])

LimitQuery = Annotated[int | None, Query()]


def _serialize(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    return [message.to_wire() for message in messages]


def _unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Message store unavailable",
    )


@router.get("/rooms/{room_id}/messages")
async def get_room_messages(
    room_id: str,
    services: ServicesDep,
    limit: LimitQuery = None,
) -> list[dict[str, Any]]:
    """Return the most recent messages of a room, oldest first."""
    try:
        messages = await services.router.room_history(room_id, limit)
    except StoreUnavailable as exc:
        raise _unavailable() from exc
    return _serialize(messages)


@router.get("/users/{user_id}/messages")
async def get_user_messages(
    user_id: str,
    services: ServicesDep,
    limit: LimitQuery = None,
) -> list[dict[str, Any]]:
    """Return the most recent messages posted by a user across rooms, oldest first."""
    try:
        messages = await services.router.user_history(user_id, limit)
    except StoreUnavailable as exc:
        raise _unavailable() from exc
    return _serialize(messages)
