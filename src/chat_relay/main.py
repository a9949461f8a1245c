"""Main entry point for the chat relay application."""

from __future__ import annotations

import argparse
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from chat_relay import __version__
from chat_relay.api.v1 import (
    connections_router,
    messages_router,
    socket_router,
    system_router,
)
from chat_relay.core.logging_config import configure_logging
from chat_relay.core.settings import Settings
from chat_relay.services.container import RelayServices, build_services

DESCRIPTION = "Real-time chat relay over persistent WebSocket channels"


def create_app(
    settings: Settings | None = None,
    *,
    services: RelayServices | None = None,
) -> FastAPI:
    """Build the FastAPI application and wire the relay services into it.

    Args:
        settings: Configuration; loaded from the environment when omitted
        services: Pre-built services, mainly for tests

    Returns:
        Configured application whose lifespan starts and stops the services
    """
    if services is None:
        settings = settings or Settings()
        configure_logging(settings.log_level)
        services = build_services(settings)
    else:
        settings = services.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.startup()
        try:
            yield
        finally:
            await services.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description=DESCRIPTION,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    # Include API routers
    app.include_router(socket_router, prefix="/api/v1")
    app.include_router(connections_router, prefix="/api/v1")
    app.include_router(messages_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": DESCRIPTION,
            "websocket": "/api/v1/ws",
            "docs": "/docs",
        }

    return app


def run() -> None:
    """Serve the relay with uvicorn."""
    parser = argparse.ArgumentParser(description=DESCRIPTION)
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--version", action="version", version=__version__)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(
        "chat_relay.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    run()
