"""Message entity for chat conversations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from codenova.domain.shared_kernel import Entity, utc_now


class MessageRole(str, Enum):
    """Role of the message sender."""

    USER = "user"
    ASSISTANT = "assistant"


class ToolApproval(str, Enum):
    """UI-side projection of a tool approval decision."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(kw_only=True)
class Message(Entity):
    """
    A single message in a conversation.

    Messages are immutable once appended, except for the assistant message
    that a live StreamingTurn is still writing into.
    """

    role: MessageRole
    content: str = ""
    created_at: datetime = field(default_factory=utc_now)
    is_streaming: bool = False
    error: str | None = None
    tool_approvals: dict[str, ToolApproval] = field(default_factory=dict)

    def set_tool_approval(self, request_id: str, status: ToolApproval) -> None:
        self.tool_approvals[request_id] = status

    def to_api_dict(self) -> dict[str, str]:
        """Wire shape used when building provider requests."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }
        if self.is_streaming:
            data["is_streaming"] = True
        if self.error:
            data["error"] = self.error
        if self.tool_approvals:
            data["tool_approvals"] = {k: v.value for k, v in self.tool_approvals.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            is_streaming=bool(data.get("is_streaming", False)),
            error=data.get("error"),
            tool_approvals={
                k: ToolApproval(v) for k, v in (data.get("tool_approvals") or {}).items()
            },
        )
