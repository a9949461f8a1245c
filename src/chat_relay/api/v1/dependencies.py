"""Shared API dependencies for the relay endpoints."""

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from starlette.requests import HTTPConnection

from chat_relay.core.settings import Settings
from chat_relay.services.container import RelayServices
from chat_relay.services.delivery import TOKEN_HEADER


def get_services(connection: HTTPConnection) -> RelayServices:
    """Return the services the running application was built with.

    Works for both HTTP requests and WebSocket sessions.
    """
    return connection.app.state.services


def get_settings(services: Annotated[RelayServices, Depends(get_services)]) -> Settings:
    return services.settings


ServicesDep = Annotated[RelayServices, Depends(get_services)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def require_management_token(
    settings: SettingsDep,
    token: Annotated[str | None, Header(alias=TOKEN_HEADER)] = None,
) -> None:
    """Reject management calls that do not carry the configured token.

    No check is made when no management token is configured.

    Raises:
        HTTPException: If the token is missing or does not match
    """
    expected = settings.management_token
    if not expected:
        return
    if token is None or not secrets.compare_digest(token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid management token",
        )
