"""
Transport adapter - issues one HTTP request per turn to a provider endpoint.

Two channels are available:
- ``HttpxTransport`` streams the response body as it arrives (SSE dialects).
- ``BufferedTransport`` asks the provider for a non-streaming JSON body and
  reads it whole. It is the relay channel used where incremental reads are
  not available; the stream decoder normalizes both into the same events.

Non-2xx responses and connection failures always surface as ``TransportError``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from codenova.domain.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class RawResponse:
    """
    Status plus either a byte stream or a buffered body.

    Streaming responses hold an open connection; callers must ``aclose()``.
    """

    status_code: int
    stream: AsyncIterator[bytes] | None = None
    body: bytes | None = None
    _close: Callable[[], Awaitable[None]] | None = field(default=None, repr=False)

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    async def aclose(self) -> None:
        if self._close is not None:
            close, self._close = self._close, None
            await close()


class TransportAdapter(ABC):
    """Abstract interface for sending one provider request."""

    @abstractmethod
    async def send(self, endpoint: str, headers: dict[str, str], body: dict[str, Any]) -> RawResponse:
        """Send the request and return once response headers are available."""

    async def aclose(self) -> None:
        """Release pooled connections."""
        return None


class _HttpxTransportBase(TransportAdapter):
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 300.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HttpxTransport(_HttpxTransportBase):
    """Direct streaming channel."""

    async def send(self, endpoint: str, headers: dict[str, str], body: dict[str, Any]) -> RawResponse:
        request = self._client.build_request("POST", endpoint, headers=headers, json=body)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            logger.error(f"Request to {endpoint} failed: {e}")
            raise TransportError(f"Connection failed: {e}") from e

        if not response.is_success:
            try:
                error_body = await response.aread()
            finally:
                await response.aclose()
            logger.warning(f"Provider returned HTTP {response.status_code} for {endpoint}")
            raise TransportError.from_response(response.status_code, error_body)

        return RawResponse(
            status_code=response.status_code,
            stream=_guarded_bytes(response),
            _close=response.aclose,
        )


class BufferedTransport(_HttpxTransportBase):
    """Relay channel: non-streaming request, whole JSON body returned."""

    async def send(self, endpoint: str, headers: dict[str, str], body: dict[str, Any]) -> RawResponse:
        payload = {**body, "stream": False}
        try:
            response = await self._client.post(endpoint, headers=headers, json=payload)
        except httpx.RequestError as e:
            logger.error(f"Request to {endpoint} failed: {e}")
            raise TransportError(f"Connection failed: {e}") from e

        if not response.is_success:
            logger.warning(f"Provider returned HTTP {response.status_code} for {endpoint}")
            raise TransportError.from_response(response.status_code, response.content)

        return RawResponse(status_code=response.status_code, body=response.content)


async def _guarded_bytes(response: httpx.Response) -> AsyncIterator[bytes]:
    # Mid-stream network failures become transport errors too
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.RequestError as e:
        raise TransportError(f"Connection lost while streaming: {e}") from e


def create_transport(
    mode: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = 300.0,
    connect_timeout: float = 10.0,
) -> TransportAdapter:
    """Create the transport for a ``direct`` or ``buffered`` transport mode."""
    if mode == "buffered":
        return BufferedTransport(client, timeout=timeout, connect_timeout=connect_timeout)
    if mode == "direct":
        return HttpxTransport(client, timeout=timeout, connect_timeout=connect_timeout)
    raise ValueError(f"Unknown transport mode: {mode}")
