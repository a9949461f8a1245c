# tests/services/test_delivery.py
from __future__ import annotations

import json

import httpx
import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from chat_relay.core.errors import DeliveryChannelError
from chat_relay.core.settings import Settings
from chat_relay.services import (
    ClusterDeliveryChannel,
    DeliveryOutcome,
    HttpDeliveryChannel,
    LocalSocketChannel,
    build_delivery_channel,
)
from chat_relay.services.delivery import TOKEN_HEADER

FRAME = {"type": "newMessage", "data": {"content": "hi"}}


def _socket(mocker, client=WebSocketState.CONNECTED, application=WebSocketState.CONNECTED):
    websocket = mocker.MagicMock()
    websocket.client_state = client
    websocket.application_state = application
    websocket.send_json = mocker.AsyncMock()
    return websocket


@pytest.mark.asyncio
async def test_local_send_writes_json(mocker) -> None:
    local = LocalSocketChannel()
    websocket = _socket(mocker)
    local.attach("c1", websocket)

    outcome = await local.send("c1", FRAME)

    assert outcome is DeliveryOutcome.DELIVERED
    websocket.send_json.assert_awaited_once_with(FRAME)


@pytest.mark.asyncio
async def test_local_unknown_connection_is_gone() -> None:
    assert await LocalSocketChannel().send("nobody", FRAME) is DeliveryOutcome.GONE


@pytest.mark.asyncio
async def test_local_closed_socket_is_gone(mocker) -> None:
    local = LocalSocketChannel()
    local.attach("c1", _socket(mocker, client=WebSocketState.DISCONNECTED))

    assert await local.send("c1", FRAME) is DeliveryOutcome.GONE


@pytest.mark.asyncio
async def test_local_handshaking_socket_is_not_gone(mocker) -> None:
    local = LocalSocketChannel()
    local.attach("c1", _socket(mocker, application=WebSocketState.CONNECTING))

    assert await local.send("c1", FRAME) is DeliveryOutcome.FAILED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (WebSocketDisconnect(1001), DeliveryOutcome.GONE),
        (RuntimeError("Cannot call send once a close message has been sent."), DeliveryOutcome.GONE),
        (ValueError("not serializable"), DeliveryOutcome.FAILED),
    ],
)
async def test_local_send_errors(mocker, error, expected) -> None:
    local = LocalSocketChannel()
    websocket = _socket(mocker)
    websocket.send_json.side_effect = error
    local.attach("c1", websocket)

    assert await local.send("c1", FRAME) is expected


def test_local_attach_and_detach(mocker) -> None:
    local = LocalSocketChannel()
    local.attach("c1", _socket(mocker))
    local.attach("c2", _socket(mocker))

    local.detach("c1")
    local.detach("c1")

    assert not local.is_attached("c1")
    assert local.is_attached("c2")
    assert len(local) == 1


def _http_channel(handler, **kwargs) -> HttpDeliveryChannel:
    return HttpDeliveryChannel(
        "https://gateway.test/prod/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_http_posts_to_connection_url() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    channel = _http_channel(handler, token="secret")
    try:
        outcome = await channel.send("abc/=", FRAME)
    finally:
        await channel.aclose()

    assert outcome is DeliveryOutcome.DELIVERED
    [request] = seen
    assert request.method == "POST"
    assert request.url.raw_path.decode() == "/prod/@connections/abc%2F%3D"
    assert request.headers[TOKEN_HEADER] == "secret"
    assert json.loads(request.content) == FRAME


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (204, DeliveryOutcome.DELIVERED),
        (410, DeliveryOutcome.GONE),
        (404, DeliveryOutcome.FAILED),
        (403, DeliveryOutcome.FAILED),
        (500, DeliveryOutcome.FAILED),
    ],
)
async def test_http_status_mapping(status, expected) -> None:
    channel = _http_channel(lambda request: httpx.Response(status))
    try:
        assert await channel.send("c1", FRAME) is expected
    finally:
        await channel.aclose()


@pytest.mark.asyncio
async def test_http_transport_error_is_failed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    channel = _http_channel(handler)
    try:
        assert await channel.send("c1", FRAME) is DeliveryOutcome.FAILED
    finally:
        await channel.aclose()


def test_http_requires_endpoint() -> None:
    with pytest.raises(DeliveryChannelError):
        HttpDeliveryChannel(None)


def test_build_local_channel() -> None:
    local = LocalSocketChannel()
    settings = Settings(delivery_backend="local")

    assert build_delivery_channel(settings, local) is local


def test_build_http_channel() -> None:
    settings = Settings(delivery_backend="http", delivery_endpoint="https://gateway.test")

    channel = build_delivery_channel(settings, LocalSocketChannel())

    assert isinstance(channel, HttpDeliveryChannel)
    assert channel.endpoint == "https://gateway.test"


def test_build_http_channel_without_endpoint() -> None:
    settings = Settings(delivery_backend="http", delivery_endpoint=None)

    with pytest.raises(DeliveryChannelError) as excinfo:
        build_delivery_channel(settings, LocalSocketChannel())

    assert excinfo.value.reason == "delivery_channel_unavailable"


def _peer(status: int, seen: list[str] | None = None) -> HttpDeliveryChannel:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return httpx.Response(status)

    return HttpDeliveryChannel(
        f"https://relay-{status}.test/api/v1", transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_cluster_prefers_local_socket(mocker) -> None:
    local = LocalSocketChannel()
    websocket = _socket(mocker)
    local.attach("c1", websocket)
    seen: list[str] = []
    channel = ClusterDeliveryChannel(local, [_peer(200, seen)])

    try:
        outcome = await channel.send("c1", FRAME)
    finally:
        await channel.aclose()

    assert outcome is DeliveryOutcome.DELIVERED
    websocket.send_json.assert_awaited_once_with(FRAME)
    assert seen == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        ([404, 200], DeliveryOutcome.DELIVERED),
        ([404, 410], DeliveryOutcome.GONE),
        ([404, 404], DeliveryOutcome.FAILED),
        ([404, 500], DeliveryOutcome.FAILED),
    ],
)
async def test_cluster_asks_peers_for_remote_sockets(statuses, expected) -> None:
    channel = ClusterDeliveryChannel(LocalSocketChannel(), [_peer(s) for s in statuses])

    try:
        assert await channel.send("remote", FRAME) is expected
    finally:
        await channel.aclose()


@pytest.mark.asyncio
async def test_cluster_without_peers_behaves_like_local() -> None:
    channel = ClusterDeliveryChannel(LocalSocketChannel(), [])

    assert await channel.send("nobody", FRAME) is DeliveryOutcome.GONE


def test_build_cluster_channel() -> None:
    local = LocalSocketChannel()
    settings = Settings(
        delivery_backend="cluster",
        delivery_peers=["http://relay-b:8000/api/v1", "http://relay-c:8000/api/v1/"],
        management_token="s3cret",
    )

    channel = build_delivery_channel(settings, local)

    assert isinstance(channel, ClusterDeliveryChannel)
    assert channel.local is local
    assert [peer.endpoint for peer in channel.peers] == [
        "http://relay-b:8000/api/v1",
        "http://relay-c:8000/api/v1",
    ]
    assert all(peer.token == "s3cret" for peer in channel.peers)


def test_build_cluster_channel_without_peers() -> None:
    settings = Settings(delivery_backend="cluster", delivery_peers=[])

    with pytest.raises(DeliveryChannelError):
        build_delivery_channel(settings, LocalSocketChannel())
