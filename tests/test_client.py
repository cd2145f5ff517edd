"""Tests for the HTTP collaborator using httpx.MockTransport."""

import httpx
import pytest

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    MalformedServiceResponseError,
    NetworkError,
    NotFoundError,
)
from adapter_bridge.utils.retry import retry_with_backoff

BASE_URL = "https://acme.zendesk.com"


def _client(handler, **kwargs):
    return BaseAPIClient(
        BASE_URL, token="secret", rate_limit=0, transport=httpx.MockTransport(handler), **kwargs
    )


class TestRequest:
    """Test single requests and error mapping."""

    async def test_json_response(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"automation": {"id": 1}})

        async with _client(handler) as client:
            response = await client.post("/api/v2/automations", json_data={"automation": {}})

        assert response.status == 201
        assert response.data == {"automation": {"id": 1}}
        assert str(seen[0].url) == f"{BASE_URL}/api/v2/automations"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    async def test_empty_body(self):
        async with _client(lambda request: httpx.Response(204)) as client:
            response = await client.delete("/api/v2/automations/1")

        assert response.data == {}

    @pytest.mark.parametrize(
        "status,error",
        [(401, AuthenticationError), (404, NotFoundError), (409, ConflictError), (422, APIError)],
    )
    async def test_error_mapping(self, status, error):
        def handler(request):
            return httpx.Response(status, json={"error": "nope"})

        async with _client(handler) as client:
            with pytest.raises(error) as exc_info:
                await client.get("/api/v2/macros")

        assert exc_info.value.status_code == status

    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(MalformedServiceResponseError):
                await client.get("/api/v2/triggers")

    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.get("/api/v2/macros")

    async def test_no_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        client = BaseAPIClient(BASE_URL, rate_limit=0, transport=httpx.MockTransport(handler))
        async with client:
            await client.get("/x")

        assert "Authorization" not in seen[0].headers


class TestPaginate:
    """Test following next-page links."""

    async def test_follows_next_page(self):
        pages = {
            "/api/v2/automations": {
                "automations": [{"id": 1}],
                "next_page": f"{BASE_URL}/api/v2/automations?page=2",
            },
            "/api/v2/automations?page=2": {"automations": [{"id": 2}], "next_page": None},
        }

        def handler(request):
            key = request.url.path + (f"?{request.url.query.decode()}" if request.url.query else "")
            return httpx.Response(200, json=pages[key])

        async with _client(handler) as client:
            collected = [page async for page in client.paginate("/api/v2/automations", "next_page")]

        assert [page["automations"][0]["id"] for page in collected] == [1, 2]

    async def test_nested_paginate_field(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(200, json={"values": [], "links": {"next": "/page2"}})
            return httpx.Response(200, json={"values": [], "links": {}})

        async with _client(handler) as client:
            collected = [page async for page in client.paginate("/page1", "links.next")]

        assert len(collected) == 2

    async def test_no_paginate_field(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"values": [], "next": "/again"})

        async with _client(handler) as client:
            collected = [page async for page in client.paginate("/page1")]

        assert len(collected) == 1
        assert len(calls) == 1

    async def test_repeated_link_stops(self):
        def handler(request):
            return httpx.Response(200, json={"next": "/page1"})

        async with _client(handler) as client:
            collected = [page async for page in client.paginate("/page1", "next")]

        assert len(collected) == 1


class TestRetry:
    """Test the async retry decorator."""

    async def test_transient_error_retried(self):
        attempts = []

        @retry_with_backoff(max_attempts=3, min_wait=0, max_wait=0)
        async def get_page():
            attempts.append(1)
            if len(attempts) < 2:
                raise NetworkError("Network error: reset")
            return "page"

        assert await get_page() == "page"
        assert len(attempts) == 2

    async def test_other_errors_not_retried(self):
        attempts = []

        @retry_with_backoff(max_attempts=3, min_wait=0, max_wait=0)
        async def get_page():
            attempts.append(1)
            raise NotFoundError("Resource not found", status_code=404)

        with pytest.raises(NotFoundError):
            await get_page()
        assert len(attempts) == 1
