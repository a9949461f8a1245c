# tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterator, Mapping
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_relay.core.settings import Settings
from chat_relay.db.session import build_engine, create_tables
from chat_relay.main import create_app
from chat_relay.repositories import InMemoryChatStore, SqlChatStore
from chat_relay.services import Broadcaster, ConnectionDirectory, DeliveryOutcome, MessageRouter
from chat_relay.services.container import RelayServices, build_services

START_MILLIS = 1_700_000_000_000


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = START_MILLIS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class RecordingChannel:
    """Delivery channel that records every frame and replays scripted outcomes."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.outcomes: dict[str, DeliveryOutcome] = {}
        self.errors: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.closed = False

    async def send(self, connection_id: str, payload: Mapping[str, Any]) -> DeliveryOutcome:
        self.sent.append((connection_id, dict(payload)))
        delay = self.delays.get(connection_id)
        if delay:
            await asyncio.sleep(delay)
        error = self.errors.get(connection_id)
        if error is not None:
            raise error
        return self.outcomes.get(connection_id, DeliveryOutcome.DELIVERED)

    async def aclose(self) -> None:
        self.closed = True

    def frames_for(self, connection_id: str) -> list[dict[str, Any]]:
        return [payload for cid, payload in self.sent if cid == connection_id]

    def recipients(self) -> set[str]:
        return {cid for cid, _ in self.sent}


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryChatStore:
    return InMemoryChatStore(clock=clock)


@pytest_asyncio.fixture()
async def sql_store(tmp_path, clock: FakeClock) -> AsyncIterator[SqlChatStore]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}")
    await create_tables(engine)
    sql_store = SqlChatStore(engine, clock=clock)
    try:
        yield sql_store
    finally:
        await sql_store.close()


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def directory(store: InMemoryChatStore) -> ConnectionDirectory:
    return ConnectionDirectory(store)


@pytest.fixture()
def broadcaster(
    directory: ConnectionDirectory, store: InMemoryChatStore, channel: RecordingChannel
) -> Broadcaster:
    return Broadcaster(directory, store, channel, delivery_timeout_seconds=0.5)


@pytest.fixture()
def router(
    store: InMemoryChatStore,
    directory: ConnectionDirectory,
    broadcaster: Broadcaster,
    clock: FakeClock,
) -> MessageRouter:
    return MessageRouter(store, directory, broadcaster, clock=clock)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        store_backend="memory",
        connection_sweep_enabled=False,
        delivery_backend="local",
        management_token=None,
    )


@pytest.fixture()
def services(test_settings: Settings) -> RelayServices:
    return build_services(test_settings)


@pytest.fixture()
def app(services: RelayServices) -> FastAPI:
    return create_app(services=services)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
