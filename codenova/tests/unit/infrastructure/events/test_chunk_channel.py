"""Tests for ChunkChannel."""

import asyncio

import pytest

from codenova.domain.events.types import AgentChunk, ChatChunk
from codenova.domain.model.agent.permission import PermissionRequest
from codenova.infrastructure.events.chunk_channel import ChannelName, ChunkChannel


@pytest.mark.unit
class TestChunkChannel:
    @pytest.mark.asyncio
    async def test_preserves_send_order_across_kinds(self, channel):
        await channel.send_agent_chunk(AgentChunk.text_chunk("s1", "a"))
        await channel.send_permission_request(
            PermissionRequest(request_id="perm_1", tool_name="Bash", tool_input={})
        )
        await channel.send_agent_chunk(AgentChunk.done("s1"))
        await channel.send_chat_chunk(ChatChunk(text="x", full="x"))

        kinds = [m.channel for m in channel.drain()]

        assert kinds == [
            ChannelName.AGENT_CHUNK,
            ChannelName.PERMISSION_REQUEST,
            ChannelName.AGENT_CHUNK,
            ChannelName.CHAT_CHUNK,
        ]

    @pytest.mark.asyncio
    async def test_to_dict(self, channel):
        await channel.send_agent_chunk(AgentChunk.tool_result("s1", "Bash", "ok"))
        await channel.send_permission_request(
            PermissionRequest(request_id="perm_1", tool_name="Bash", tool_input={"command": "ls"})
        )

        first, second = channel.drain()

        assert first.to_dict() == {
            "channel": "agent:chunk",
            "payload": {"streamId": "s1", "type": "tool_result", "toolName": "Bash", "result": "ok"},
        }
        assert second.to_dict()["payload"]["requestId"] == "perm_1"
        assert second.to_dict()["payload"]["toolKind"] == "command"

    @pytest.mark.asyncio
    async def test_iteration_ends_on_close(self, channel):
        await channel.send_agent_chunk(AgentChunk.text_chunk("s1", "a"))
        channel.close()

        received = [m async for m in channel]

        assert len(received) == 1
        assert await channel.get() is None

    @pytest.mark.asyncio
    async def test_sends_after_close_are_dropped(self, channel):
        channel.close()
        await channel.send_agent_chunk(AgentChunk.done("s1"))

        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_get_waits_for_producer(self, channel):
        getter = asyncio.create_task(channel.get())
        await asyncio.sleep(0)
        assert not getter.done()

        await channel.send_agent_chunk(AgentChunk.done("s1"))

        message = await asyncio.wait_for(getter, timeout=1)
        assert message.payload.type.value == "done"

    @pytest.mark.asyncio
    async def test_bounded_channel_close_when_full(self):
        channel = ChunkChannel(maxsize=1)
        await channel.send_agent_chunk(AgentChunk.text_chunk("s1", "a"))

        channel.close()

        assert (await channel.get()).payload.text == "a"
        assert await channel.get() is None
