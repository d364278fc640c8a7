"""
Chunk Channel - ordered, queue-backed UI event sink.

Every chunk and permission request goes through one ``asyncio.Queue``, so
the consumer sees them in the exact order they were sent. A bounded queue
applies backpressure to the producer.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from codenova.domain.events.types import AgentChunk, ChatChunk
from codenova.domain.model.agent.permission import PermissionRequest
from codenova.domain.ports.services.event_sink_port import EventSinkPort

logger = logging.getLogger(__name__)


class ChannelName(str, Enum):
    AGENT_CHUNK = "agent:chunk"
    CHAT_CHUNK = "chat:chunk"
    PERMISSION_REQUEST = "agent:permissionRequest"


@dataclass(frozen=True)
class ChannelMessage:
    channel: ChannelName
    payload: AgentChunk | ChatChunk | PermissionRequest

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.payload, PermissionRequest):
            data = self.payload.to_event()
        else:
            data = self.payload.to_dict()
        return {"channel": self.channel.value, "payload": data}


_CLOSED = object()


class ChunkChannel(EventSinkPort):
    """
    Single typed outbound channel.

    Usage:
        channel = ChunkChannel()
        async for message in channel:
            render(message.to_dict())
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_agent_chunk(self, chunk: AgentChunk) -> None:
        await self._put(ChannelMessage(ChannelName.AGENT_CHUNK, chunk))

    async def send_chat_chunk(self, chunk: ChatChunk) -> None:
        await self._put(ChannelMessage(ChannelName.CHAT_CHUNK, chunk))

    async def send_permission_request(self, request: PermissionRequest) -> None:
        await self._put(ChannelMessage(ChannelName.PERMISSION_REQUEST, request))

    async def _put(self, message: ChannelMessage) -> None:
        if self._closed:
            logger.debug(f"[ChunkChannel] Dropping {message.channel.value} after close")
            return
        await self._queue.put(message)

    async def get(self) -> ChannelMessage | None:
        """Next message, or None once the channel is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def drain(self) -> list[ChannelMessage]:
        """Everything currently queued, without waiting."""
        items = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not _CLOSED:
                items.append(item)
        return items

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # A full queue has no waiting getter; get() sees the flag once drained
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ChannelMessage]:
        while True:
            message = await self.get()
            if message is None:
                return
            yield message
