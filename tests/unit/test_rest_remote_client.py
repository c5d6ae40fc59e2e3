"""Unit tests for the HttpRemoteClient."""

import json

import httpx
import pytest

from cmms_sync.domain.entities import Record
from cmms_sync.domain.exceptions import (
    AuthenticationError,
    NetworkError,
    ServerError,
    ValidationError,
)
from cmms_sync.infrastructure.http import HttpRemoteClient

from tests.fakes import WORK_ORDERS


# ── Helpers ──


def _client(handler, **kwargs) -> HttpRemoteClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpRemoteClient(
        WORK_ORDERS,
        "http://cmms.test/api/",
        token_provider=kwargs.pop("token_provider", lambda: "secret-token"),
        http_client=http_client,
        **kwargs,
    )


def _error_transport(status_code: int, body: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body or {})

    return handler


# ── Tests ──


@pytest.mark.asyncio
async def test_fetch_all_translates_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert str(request.url) == "http://cmms.test/api/work-orders"
        assert request.headers["Authorization"] == "Bearer secret-token"
        return httpx.Response(200, json=[{"id": 1, "title": "Leak", "asset_id": "ast-1"}])

    records = await _client(handler).fetch_all()

    assert records == [Record(id="1", data={"title": "Leak", "assetId": "ast-1"})]


@pytest.mark.asyncio
async def test_create_sends_snake_case_and_client_token():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 77, **captured["body"]})

    record = Record(id="wo-1000", data={"title": "Fix pump", "assetId": "ast-1"}, client_token="tok-1")
    confirmed = await _client(handler).create(record)

    assert captured["method"] == "POST"
    assert captured["body"] == {"title": "Fix pump", "asset_id": "ast-1", "client_token": "tok-1"}
    assert confirmed == Record(id="77", data={"title": "Fix pump", "assetId": "ast-1"}, client_token="tok-1")


@pytest.mark.asyncio
async def test_update_patches_record_url():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/api/work-orders/77"
        assert json.loads(request.content) == {"status": "DONE"}
        return httpx.Response(200, json={"id": "77", "status": "DONE"})

    confirmed = await _client(handler).update("77", {"status": "DONE"})
    assert confirmed.data == {"status": "DONE"}


@pytest.mark.asyncio
async def test_delete_accepts_empty_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(204)

    assert await _client(handler).delete("77") is None


@pytest.mark.asyncio
async def test_no_authorization_header_when_signed_out():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return httpx.Response(200, json=[])

    assert await _client(handler, token_provider=lambda: None).fetch_all() == []


@pytest.mark.asyncio
async def test_4xx_maps_to_validation_error_with_server_message():
    with pytest.raises(ValidationError) as exc_info:
        await _client(_error_transport(422, {"error": "title too short"})).create(Record(id="wo-1", data={}))
    assert exc_info.value.message == "title too short"
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_message_key_is_used_when_error_key_missing():
    with pytest.raises(ValidationError) as exc_info:
        await _client(_error_transport(400, {"message": "bad status"})).update("1", {"status": "?"})
    assert exc_info.value.message == "bad status"


@pytest.mark.asyncio
async def test_5xx_maps_to_server_error():
    with pytest.raises(ServerError) as exc_info:
        await _client(_error_transport(503)).fetch_all()
    assert exc_info.value.message == "Request failed"


@pytest.mark.asyncio
async def test_401_raises_and_tears_down_session():
    torn_down = []
    client = _client(_error_transport(401, {"error": "jwt expired"}), on_unauthorized=lambda: torn_down.append(True))

    with pytest.raises(AuthenticationError):
        await client.delete("77")

    assert torn_down == [True]


@pytest.mark.asyncio
async def test_transport_failure_maps_to_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        await _client(handler).fetch_all()


@pytest.mark.asyncio
async def test_non_list_listing_is_a_server_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rows": []})

    with pytest.raises(ServerError):
        await _client(handler).fetch_all()
