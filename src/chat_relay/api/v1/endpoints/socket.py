"""WebSocket channel endpoint.

Each accepted socket becomes one connection in the registry. Inbound frames
are routed through the message router and the route's response body is
written back on the same socket as an acknowledgement.
"""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from chat_relay.services.delivery import DeliveryOutcome

from ..dependencies import ServicesDep

# Configure logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(tags=["socket"])

CONNECTION_ID_BYTES = 12


def new_connection_id() -> str:
    """Mint an opaque, unguessable connection id."""
    return secrets.token_urlsafe(CONNECTION_ID_BYTES)


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    services: ServicesDep,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    username: Annotated[str | None, Query()] = None,
) -> None:
    """Serve one chat channel for its whole lifetime."""
    connection_id = new_connection_id()
    local = services.local_channel
    message_router = services.router

    # Registered before the handshake completes, so a client that sees the
    # socket open is already a broadcast recipient.
    local.attach(connection_id, websocket)
    response = await message_router.connect(connection_id, user_id, username)
    if not response.ok:
        # Accepted first so the client sees 1011 rather than an HTTP 403.
        local.detach(connection_id)
        await websocket.accept()
        await websocket.close(
            code=status.WS_1011_INTERNAL_ERROR,
            reason=response.body.get("error", ""),
        )
        return

    try:
        await websocket.accept()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")

            response = await message_router.dispatch(connection_id, frame)
            outcome = await local.send(connection_id, response.body)
            if outcome is DeliveryOutcome.GONE:
                break
    except WebSocketDisconnect:
        pass
    finally:
        local.detach(connection_id)
        await message_router.disconnect(connection_id)
        logger.debug("Socket %s closed", connection_id)
