"""UI-facing chunk types emitted by the chat and agent controllers.

Agent path chunks: ``{streamId, type: text|tool_running|tool_result|error|done}``.
Chat path chunks: ``{text, full, done, usage}``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AgentChunkType(str, Enum):
    TEXT = "text"
    TOOL_RUNNING = "tool_running"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentChunkType.DONE, AgentChunkType.ERROR)


@dataclass(frozen=True)
class AgentChunk:
    """One unit of agent output, tagged with the stream it belongs to."""

    stream_id: str
    type: AgentChunkType
    text: str | None = None
    tool_name: str | None = None
    result: str | None = None
    error: str | None = None

    @classmethod
    def text_chunk(cls, stream_id: str, text: str) -> "AgentChunk":
        return cls(stream_id, AgentChunkType.TEXT, text=text)

    @classmethod
    def tool_running(cls, stream_id: str, tool_name: str) -> "AgentChunk":
        return cls(stream_id, AgentChunkType.TOOL_RUNNING, tool_name=tool_name)

    @classmethod
    def tool_result(cls, stream_id: str, tool_name: str, result: str) -> "AgentChunk":
        return cls(stream_id, AgentChunkType.TOOL_RESULT, tool_name=tool_name, result=result)

    @classmethod
    def error_chunk(cls, stream_id: str, error: str) -> "AgentChunk":
        return cls(stream_id, AgentChunkType.ERROR, error=error)

    @classmethod
    def done(cls, stream_id: str) -> "AgentChunk":
        return cls(stream_id, AgentChunkType.DONE)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"streamId": self.stream_id, "type": self.type.value}
        if self.text is not None:
            data["text"] = self.text
        if self.tool_name is not None:
            data["toolName"] = self.tool_name
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class ChatChunk:
    """Incremental chat update; ``done`` chunks carry the final usage."""

    text: str = ""
    full: str = ""
    done: bool = False
    usage: dict[str, Any] | None = field(default=None)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"done": self.done}
        if self.text:
            data["text"] = self.text
            data["full"] = self.full
        if self.usage is not None:
            data["usage"] = self.usage
        if self.error:
            data["error"] = self.error
        return data
