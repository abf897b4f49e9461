from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import ANONYMOUS
from rental_chat.application.exceptions import HistoryUnavailableError, SendFailedError
from rental_chat.infrastructure.http.client import ChatApiClient
from rental_chat.infrastructure.http.storage import StorageUploader
from rental_chat.infrastructure.http.urls import build_ws_url

API = "https://api.rental.test"


def _client(handler) -> tuple[ChatApiClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(base_url=API, transport=httpx.MockTransport(handler))
    return ChatApiClient(http), http


@pytest.mark.asyncio
async def test_fetch_sends_bearer_and_listing_filter(user_principal):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[
            {"id": 1, "listing_id": 42, "sender_id": "u-7", "content": "hi",
             "created_at": "2026-03-01T12:00:00Z"},
        ])

    api, http = _client(handler)
    async with http:
        messages = await api.fetch("42", user_principal)

    assert seen[0].url.path == "/messages"
    assert seen[0].url.params["listing_id"] == "42"
    assert seen[0].headers["Authorization"] == "Bearer tok-42"
    assert [(m.id, m.conversation_id, m.content) for m in messages] == [("1", "42", "hi")]
    assert messages[0].created_at.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_fetch_drops_malformed_rows(user_principal):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"messages": [
            {"id": 1, "listing_id": 42, "sender_id": "u-7", "content": "ok",
             "created_at": "2026-03-01T12:00:00+00:00"},
            {"id": 2, "listing_id": 42},
            "garbage",
        ]})

    api, http = _client(handler)
    async with http:
        messages = await api.fetch("42", user_principal)

    assert [m.id for m in messages] == ["1"]


@pytest.mark.asyncio
async def test_fetch_error_status_is_unavailable(user_principal):
    api, http = _client(lambda request: httpx.Response(503))
    async with http:
        with pytest.raises(HistoryUnavailableError):
            await api.fetch("42", user_principal)


@pytest.mark.asyncio
async def test_fetch_transport_error_is_unavailable(user_principal):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    api, http = _client(handler)
    async with http:
        with pytest.raises(HistoryUnavailableError):
            await api.fetch("42", user_principal)


@pytest.mark.asyncio
async def test_fetch_without_credential_is_unavailable():
    api, http = _client(lambda request: httpx.Response(200, json=[]))
    async with http:
        with pytest.raises(HistoryUnavailableError):
            await api.fetch("42", ANONYMOUS)


@pytest.mark.asyncio
async def test_send_fills_durable_copy_from_minimal_response(user_principal):
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": 2, "created_at": "2026-03-01T12:00:30Z"})

    api, http = _client(handler)
    async with http:
        msg = await api.send(SendMessageDTO(conversation_id="42", content="how much?"), user_principal)

    assert bodies == [{"listing_id": "42", "content": "how much?"}]
    assert msg is not None
    assert (msg.id, msg.conversation_id, msg.sender_id, msg.content) == ("2", "42", "u-42", "how much?")


@pytest.mark.asyncio
async def test_send_passes_attachment(user_principal):
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={
            "id": "9", "listing_id": "42", "sender_id": "u-42", "content": "",
            "attachment_url": "https://cdn.test/x.png", "created_at": "2026-03-01T12:00:30Z",
        })

    api, http = _client(handler)
    async with http:
        msg = await api.send(
            SendMessageDTO(conversation_id="42", content="", attachment_url="https://cdn.test/x.png"),
            user_principal,
        )

    assert bodies[0]["attachment_url"] == "https://cdn.test/x.png"
    assert msg is not None and msg.attachment_url == "https://cdn.test/x.png"


@pytest.mark.asyncio
async def test_send_without_body_returns_none(user_principal):
    api, http = _client(lambda request: httpx.Response(204))
    async with http:
        assert await api.send(SendMessageDTO(conversation_id="42", content="hi"), user_principal) is None


@pytest.mark.asyncio
async def test_send_error_status_raises(user_principal):
    api, http = _client(lambda request: httpx.Response(500, json={"detail": "boom"}))
    async with http:
        with pytest.raises(SendFailedError):
            await api.send(SendMessageDTO(conversation_id="42", content="hi"), user_principal)


@pytest.mark.parametrize(
    ("api_url", "ws_url", "path", "expected"),
    [
        ("http://localhost:8000", None, "/ws", "ws://localhost:8000/ws"),
        ("https://api.rental.test/", None, "ws", "wss://api.rental.test/ws"),
        ("https://api.rental.test", "wss://push.rental.test", "/ws", "wss://push.rental.test/ws"),
        (None, None, "/ws", ""),
    ],
)
def test_build_ws_url(api_url, ws_url, path, expected):
    assert build_ws_url(api_url, ws_url, path) == expected


def test_client_ws_url_uses_http_base():
    api = ChatApiClient(httpx.AsyncClient(base_url="https://api.rental.test"))
    assert api.ws_url() == "wss://api.rental.test/ws"


@pytest.mark.asyncio
async def test_storage_upload_returns_public_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Key": "chat-images/chat/42/a.png"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        uploader = StorageUploader(http, "https://store.test/", "chat-images", "svc-key")
        url = await uploader.upload("chat/42/a.png", b"png", "image/png")

    assert url == "https://store.test/storage/v1/object/public/chat-images/chat/42/a.png"
    assert seen[0].url.path == "/storage/v1/object/chat-images/chat/42/a.png"
    assert seen[0].headers["Content-Type"] == "image/png"
    assert seen[0].headers["Authorization"] == "Bearer svc-key"


@pytest.mark.asyncio
async def test_storage_upload_failure_raises():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(413))) as http:
        uploader = StorageUploader(http, "https://store.test", "chat-images", "svc-key")
        with pytest.raises(SendFailedError):
            await uploader.upload("chat/42/a.png", b"png", "image/png")
