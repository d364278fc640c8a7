"""Tests for the httpx transport adapters."""

import json

import httpx
import pytest

from codenova.domain.exceptions import TransportError
from codenova.infrastructure.llm.transport import (
    BufferedTransport,
    HttpxTransport,
    create_transport,
)

ENDPOINT = "https://api.example.com/v1/messages"
HEADERS = {"x-api-key": "k", "Content-Type": "application/json"}


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_streams_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["key"] = request.headers["x-api-key"]
            return httpx.Response(200, content=b"data: one\ndata: two\n")

        async with client_for(handler) as client:
            transport = HttpxTransport(client)
            response = await transport.send(ENDPOINT, HEADERS, {"stream": True})
            data = b"".join([chunk async for chunk in response.stream])
            await response.aclose()

        assert response.is_streaming
        assert response.status_code == 200
        assert data == b"data: one\ndata: two\n"
        assert seen == {"body": {"stream": True}, "key": "k"}

    @pytest.mark.asyncio
    async def test_structured_error_message(self):
        def handler(request):
            return httpx.Response(
                401,
                json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}},
            )

        async with client_for(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpxTransport(client).send(ENDPOINT, HEADERS, {})

        error = exc_info.value
        assert error.status_code == 401
        assert error.message == "invalid x-api-key"
        assert error.error_type == "authentication_error"
        assert error.user_message() == "invalid x-api-key (HTTP 401)"

    @pytest.mark.asyncio
    async def test_raw_body_fallback(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with client_for(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpxTransport(client).send(ENDPOINT, HEADERS, {})

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "API request failed: 502 - Bad Gateway"

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await HttpxTransport(client).send(ENDPOINT, HEADERS, {})

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message


@pytest.mark.unit
class TestBufferedTransport:
    @pytest.mark.asyncio
    async def test_forces_non_streaming_request(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": []})

        async with client_for(handler) as client:
            response = await BufferedTransport(client).send(ENDPOINT, HEADERS, {"stream": True, "model": "m"})

        assert seen["body"] == {"stream": False, "model": "m"}
        assert not response.is_streaming
        assert json.loads(response.body) == {"content": []}

    @pytest.mark.asyncio
    async def test_error_response(self):
        def handler(request):
            return httpx.Response(429, json={"error": "rate limited"})

        async with client_for(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await BufferedTransport(client).send(ENDPOINT, HEADERS, {})

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "rate limited"


@pytest.mark.unit
class TestCreateTransport:
    @pytest.mark.asyncio
    async def test_modes(self):
        async with httpx.AsyncClient() as client:
            assert isinstance(create_transport("direct", client), HttpxTransport)
            assert isinstance(create_transport("buffered", client), BufferedTransport)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            create_transport("carrier-pigeon")
