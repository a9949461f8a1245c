"""Gateway-style management API for pushing frames to connections.

``POST /@connections/{connection_id}`` is the counterpart of
``HttpDeliveryChannel``: a relay process holding the sockets exposes this
endpoint so that other processes can deliver to them.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from chat_relay.services.delivery import DeliveryOutcome

from ..dependencies import ServicesDep, require_management_token

router = APIRouter(
    prefix="/@connections",
    tags=["connections"],
    dependencies=[Depends(require_management_token)],
)


@router.post("/{connection_id}")
async def post_to_connection(
    connection_id: str,
    payload: Annotated[dict[str, Any], Body()],
    services: ServicesDep,
) -> dict[str, str]:
    """Write ``payload`` to a socket held by this process.

    Args:
        connection_id: Target connection
        payload: JSON frame to write
        services: Relay services

    Returns:
        Delivery status

    Raises:
        HTTPException: 404 if this process does not hold the connection, 410 if
            the socket has closed, 502 if the write failed
    """
    if not services.local_channel.is_attached(connection_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Connection not held here",
        )
    outcome = await services.local_channel.send(connection_id, payload)
    if outcome is DeliveryOutcome.GONE:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Connection is gone",
        )
    if outcome is DeliveryOutcome.FAILED:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Delivery failed",
        )
    return {"status": outcome.value}
