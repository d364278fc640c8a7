"""Events produced by an external agent process, independent of any SDK."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProcessEventType(str, Enum):
    TEXT_DELTA = "text_delta"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    RESULT = "result"


@dataclass(frozen=True)
class ProcessEvent:
    """
    One event from the agent process.

    ``RESULT`` is the terminal signal: ``is_error`` tells success from
    failure and ``text`` carries the final result string, if any.
    """

    type: ProcessEventType
    text: str | None = None
    tool_name: str | None = None
    tool_use_id: str | None = None
    tool_input: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False

    @classmethod
    def text_delta(cls, text: str) -> "ProcessEvent":
        return cls(ProcessEventType.TEXT_DELTA, text=text)

    @classmethod
    def tool_use(
        cls, tool_name: str, tool_use_id: str | None = None, tool_input: dict[str, Any] | None = None
    ) -> "ProcessEvent":
        return cls(
            ProcessEventType.TOOL_USE,
            tool_name=tool_name,
            tool_use_id=tool_use_id,
            tool_input=tool_input or {},
        )

    @classmethod
    def tool_result(
        cls,
        tool_name: str,
        content: str,
        tool_use_id: str | None = None,
        is_error: bool = False,
    ) -> "ProcessEvent":
        return cls(
            ProcessEventType.TOOL_RESULT,
            text=content,
            tool_name=tool_name,
            tool_use_id=tool_use_id,
            is_error=is_error,
        )

    @classmethod
    def error(cls, message: str) -> "ProcessEvent":
        return cls(ProcessEventType.ERROR, text=message, is_error=True)

    @classmethod
    def result(cls, text: str | None = None, is_error: bool = False) -> "ProcessEvent":
        return cls(ProcessEventType.RESULT, text=text, is_error=is_error)
