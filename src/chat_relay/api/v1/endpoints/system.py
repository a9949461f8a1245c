"""System and transparency endpoints for the chat relay."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter

from ..dependencies import ServicesDep

# Configure logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config(services: ServicesDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes tokens and connection strings.
    """
    settings = services.settings
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "store": {"backend": settings.store_backend},
        "rooms": {
            "default_room": settings.default_room,
            "history_default_limit": settings.history_default_limit,
            "history_max_limit": settings.history_max_limit,
        },
        "connections": {
            "ttl_seconds": settings.connection_ttl_seconds,
            "sweep_enabled": settings.connection_sweep_enabled,
            "sweep_interval_seconds": settings.connection_sweep_interval_seconds,
        },
        "delivery": {
            "backend": settings.delivery_backend,
            "timeout_seconds": settings.delivery_timeout_seconds,
        },
    }


@router.get("/health")
async def get_system_health(services: ServicesDep) -> dict[str, object]:
    """Health check covering the store and the background sweeper.

    Returns:
        Dictionary with overall status, component health and version info
    """
    try:
        await services.store.ping()
        store_status = "healthy"
    except Exception as e:
        logger.warning("Store health check failed: %s", e)
        store_status = f"unhealthy: {e}"

    sweeper = services.sweeper
    if sweeper is None:
        sweeper_status = "disabled"
    else:
        sweeper_status = "running" if sweeper.running else "stopped"

    return {
        "status": "healthy" if store_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "store": store_status,
            "sweeper": sweeper_status,
            "local_sockets": len(services.local_channel),
        },
        "version": services.settings.app_version,
    }
