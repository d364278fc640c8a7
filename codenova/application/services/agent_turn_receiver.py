"""
Agent Turn Receiver - projects agent chunks onto the assistant turn.

The receiver is bound to one stream id and discards chunks tagged with any
other id, so stragglers from an aborted session never leak into a newer
turn even if the sender already let them through.
"""

import logging
from collections.abc import Awaitable, Callable

from codenova.domain.events.types import AgentChunk, AgentChunkType
from codenova.domain.model.agent.permission import PermissionDecision, PermissionRequest
from codenova.domain.model.chat.message import ToolApproval
from codenova.domain.model.chat.streaming_turn import StreamingTurn
from codenova.infrastructure.events.chunk_channel import ChannelName, ChunkChannel

logger = logging.getLogger(__name__)

RESULT_PREVIEW_CHARS = 2000

PermissionCallback = Callable[[PermissionRequest], Awaitable[None]]


class AgentTurnReceiver:
    def __init__(
        self,
        stream_id: str,
        turn: StreamingTurn,
        result_preview_chars: int = RESULT_PREVIEW_CHARS,
    ) -> None:
        self.stream_id = stream_id
        self.turn = turn
        self._result_preview_chars = result_preview_chars
        self.discarded = 0

    def accept(self, chunk: AgentChunk) -> bool:
        """Apply one chunk. Returns False if it was discarded."""
        if chunk.stream_id != self.stream_id:
            self.discarded += 1
            logger.debug(
                f"Discarding {chunk.type.value} chunk from stale stream {chunk.stream_id} "
                f"(current {self.stream_id})"
            )
            return False
        if self.turn.is_finalized:
            self.discarded += 1
            return False

        if chunk.type == AgentChunkType.TEXT:
            self.turn.append(chunk.text or "")
        elif chunk.type == AgentChunkType.TOOL_RUNNING:
            self.turn.append(f"\n\n> Running: `{chunk.tool_name}`")
        elif chunk.type == AgentChunkType.TOOL_RESULT:
            preview = (chunk.result or "")[: self._result_preview_chars]
            self.turn.append(f"\n```\n{preview}\n```")
        elif chunk.type == AgentChunkType.DONE:
            self.turn.finalize()
        elif chunk.type == AgentChunkType.ERROR:
            self.turn.finalize(error=chunk.error or "Agent error")
        return True

    def track_permission_request(self, request: PermissionRequest) -> bool:
        """Mark a request pending on the turn's message, if it belongs to this stream."""
        if request.stream_id and request.stream_id != self.stream_id:
            return False
        self.turn.message.set_tool_approval(request.request_id, ToolApproval.PENDING)
        return True

    def record_decision(self, request_id: str, decision: PermissionDecision) -> None:
        status = ToolApproval.APPROVED if decision.allowed else ToolApproval.REJECTED
        self.turn.message.set_tool_approval(request_id, status)

    async def consume(
        self,
        channel: ChunkChannel,
        on_permission_request: PermissionCallback | None = None,
    ) -> StreamingTurn:
        """Read the channel until the turn is finalized or the channel closes."""
        while not self.turn.is_finalized:
            message = await channel.get()
            if message is None:
                break
            if message.channel == ChannelName.AGENT_CHUNK:
                self.accept(message.payload)
            elif message.channel == ChannelName.PERMISSION_REQUEST:
                if self.track_permission_request(message.payload) and on_permission_request:
                    await on_permission_request(message.payload)
        return self.turn
