"""Application settings and configuration.

This module defines all configuration options for the chat relay.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Chat Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Durable store
    store_backend: Literal["sql", "memory"] = Field(default="sql", alias="STORE_BACKEND")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./chat_relay.db",
        alias="DATABASE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    database_auto_create: bool = Field(default=True, alias="DATABASE_AUTO_CREATE")

    # Rooms and history
    default_room: str = Field(default="global", alias="DEFAULT_ROOM")
    history_default_limit: int = Field(default=50, alias="HISTORY_DEFAULT_LIMIT")
    history_max_limit: int = Field(default=100, alias="HISTORY_MAX_LIMIT")

    # Connection registry
    connection_ttl_seconds: int = Field(default=24 * 60 * 60, alias="CONNECTION_TTL_SECONDS")
    connection_sweep_enabled: bool = Field(default=True, alias="CONNECTION_SWEEP_ENABLED")
    connection_sweep_interval_seconds: float = Field(
        default=300.0,
        alias="CONNECTION_SWEEP_INTERVAL_SECONDS",
    )

    # Outbound delivery
    delivery_backend: Literal["local", "http", "cluster"] = Field(
        default="local", alias="DELIVERY_BACKEND"
    )
    delivery_endpoint: str | None = Field(default=None, alias="DELIVERY_ENDPOINT")
    # Peer relay API roots, e.g. ["http://relay-b:8000/api/v1"]
    delivery_peers: list[str] = Field(default_factory=list, alias="DELIVERY_PEERS")
    delivery_timeout_seconds: float = Field(default=10.0, alias="DELIVERY_TIMEOUT_SECONDS")
    management_token: str | None = Field(default=None, alias="MANAGEMENT_TOKEN")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts async driver URLs to their blocking counterparts for
        synchronous operations like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url


settings = Settings()
