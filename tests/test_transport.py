"""Integration tests for the aiohttp transport against a local server."""

import asyncio
import base64
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer
from pydantic import BaseModel
from svcclient import (
    AiohttpTransport,
    AsyncServiceClient,
    ClientConfig,
    CredentialsConfig,
    RequestTimeoutError,
    WebServiceError,
)

EXPECTED_AUTH = "Basic " + base64.b64encode(b"svc:pw").decode()


class Item(BaseModel):
    id: int
    name: Optional[str] = None


def _make_app(seen: list) -> web.Application:
    async def get_item(request: web.Request) -> web.Response:
        seen.append(request)
        item_id = int(request.query.get("id", "0"))
        return web.json_response({"id": item_id, "name": "x"})

    async def create_item(request: web.Request) -> web.Response:
        seen.append(request)
        if request.headers.get("Authorization") != EXPECTED_AUTH:
            return web.json_response(
                {"id": 0, "name": "denied"},
                status=401,
                headers={"WWW-Authenticate": 'Basic realm="items"'},
            )
        body = await request.json()
        return web.json_response({"id": 1, "name": body["name"]}, status=201)

    async def big(request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(headers={"Content-Type": "application/json"})
        await response.prepare(request)
        await response.write(b"[")
        for i in range(2000):
            prefix = b"," if i else b""
            await response.write(prefix + f'{{"id":{i}}}'.encode())
        await response.write(b"]")
        await response.write_eof()
        return response

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({"id": 1})

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500, reason="Internal Server Error", text="<html>oops</html>")

    app = web.Application()
    app.router.add_get("/items", get_item)
    app.router.add_post("/items", create_item)
    app.router.add_get("/big", big)
    app.router.add_get("/slow", slow)
    app.router.add_get("/broken", broken)
    return app


class TestAiohttpTransport:
    """End-to-end calls over a real socket."""

    @pytest_asyncio.fixture
    async def server(self):
        """Start a local aiohttp server."""
        seen: list = []
        server = LocalServer(_make_app(seen))
        await server.start_server()
        server.seen = seen
        yield server
        await server.close()

    def _config(self, server, **kwargs) -> ClientConfig:
        return ClientConfig(base_url=str(server.make_url("/")), **kwargs)

    @pytest.mark.asyncio
    async def test_get_with_query(self, server):
        """Test GET /items {id: 7} -> /items?id=7 -> decoded item."""
        async with AsyncServiceClient(self._config(server)) as client:
            item = await client.request("GET", "/items", {"id": 7}, response_type=Item)

        assert item == Item(id=7, name="x")
        request = server.seen[0]
        assert request.query_string == "id=7"
        assert request.headers["Accept"] == "application/json, */*"

    @pytest.mark.asyncio
    async def test_post_auth_retry(self, server):
        """Test POST 401 -> Basic auth retry -> 201."""
        config = self._config(server, credentials=CredentialsConfig(username="svc", password="pw"))
        async with AsyncServiceClient(config) as client:
            item = await client.request("POST", "/items", {"name": "x"}, response_type=Item)

        assert item == Item(id=1, name="x")
        assert len(server.seen) == 2
        assert "Authorization" not in server.seen[0].headers
        assert server.seen[1].headers["Authorization"] == EXPECTED_AUTH
        assert server.seen[1].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_without_credentials_is_fault(self, server):
        """Test that an unanswered challenge carries the decoded error body."""
        async with AsyncServiceClient(self._config(server)) as client:
            with pytest.raises(WebServiceError) as exc_info:
                await client.request("POST", "/items", {"name": "x"}, response_type=Item)

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_dto == Item(id=0, name="denied")

    @pytest.mark.asyncio
    async def test_large_streamed_body(self, server):
        """Test a body spanning many reads is decoded whole."""
        async with AsyncServiceClient(self._config(server)) as client:
            items = await client.request("GET", "/big", response_type=list[Item])

        assert len(items) == 2000
        assert items[-1].id == 1999

    @pytest.mark.asyncio
    async def test_timeout(self, server):
        """Test that a slow endpoint fails with RequestTimeoutError."""
        async with AsyncServiceClient(self._config(server, timeout=0.2)) as client:
            with pytest.raises(RequestTimeoutError):
                await client.request("GET", "/slow")

    @pytest.mark.asyncio
    async def test_undecodable_server_error(self, server):
        """Test that a non-JSON 500 still reports its status."""
        async with AsyncServiceClient(self._config(server)) as client:
            with pytest.raises(WebServiceError) as exc_info:
                await client.request("GET", "/broken", response_type=Item)

        assert exc_info.value.status_code == 500
        assert exc_info.value.status_description == "Internal Server Error"
        assert exc_info.value.response_dto is None

    @pytest.mark.asyncio
    async def test_injected_transport_not_closed(self, server):
        """Test that a caller-supplied transport outlives the client."""
        async with AiohttpTransport() as transport:
            async with AsyncServiceClient(self._config(server), transport=transport) as client:
                await client.request("GET", "/items", {"id": 1})
            assert transport.is_open


class TestTransportLifecycle:
    """Tests for session handling."""

    def test_create_request_requires_session(self):
        """Test that requests need an open session."""
        with pytest.raises(RuntimeError):
            AiohttpTransport().create_request("GET", "https://example.com")

    @pytest.mark.asyncio
    async def test_session_closed_on_exit(self):
        """Test that leaving the context closes the session."""
        transport = AiohttpTransport(user_agent="svcclient-test")
        async with transport:
            assert transport.is_open
        assert not transport.is_open
