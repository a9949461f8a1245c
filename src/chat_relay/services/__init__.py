"""Business logic services for the chat relay."""

from .broadcaster import Broadcaster, BroadcastReport
from .delivery import (
    ClusterDeliveryChannel,
    DeliveryChannel,
    DeliveryOutcome,
    HttpDeliveryChannel,
    LocalSocketChannel,
    build_delivery_channel,
)
from .directory import ConnectionDirectory
from .router import MessageRouter, RouteResponse
from .sweeper import ConnectionSweeper

__all__ = [
    "Broadcaster",
    "BroadcastReport",
    "ClusterDeliveryChannel",
    "ConnectionDirectory",
    "ConnectionSweeper",
    "DeliveryChannel",
    "DeliveryOutcome",
    "HttpDeliveryChannel",
    "LocalSocketChannel",
    "MessageRouter",
    "RouteResponse",
    "build_delivery_channel",
]
