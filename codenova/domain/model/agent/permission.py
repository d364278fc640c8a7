"""Tool permission request and decision value types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from codenova.domain.shared_kernel import utc_now


class PermissionBehavior(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ToolKind(str, Enum):
    """Coarse classification of a proposed tool call, shown to the reviewer."""

    READ = "read"
    FILE_WRITE = "file_write"
    COMMAND = "command"
    OTHER = "other"


_FILE_WRITE_TOOLS = {"write", "edit", "multiedit", "notebookedit"}
_COMMAND_TOOLS = {"bash", "bashoutput", "killshell"}
_READ_TOOLS = {"read", "glob", "grep", "ls", "webfetch", "websearch", "todowrite"}


def classify_tool(tool_name: str) -> ToolKind:
    name = tool_name.lower().rsplit("__", 1)[-1]
    if name in _FILE_WRITE_TOOLS:
        return ToolKind.FILE_WRITE
    if name in _COMMAND_TOOLS:
        return ToolKind.COMMAND
    if name in _READ_TOOLS:
        return ToolKind.READ
    return ToolKind.OTHER


@dataclass(frozen=True)
class PermissionDecision:
    """A reviewer's (or the timeout's) answer to a permission request."""

    behavior: PermissionBehavior
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.behavior == PermissionBehavior.ALLOW

    @classmethod
    def allow(cls) -> "PermissionDecision":
        return cls(PermissionBehavior.ALLOW)

    @classmethod
    def deny(cls, message: str | None = None) -> "PermissionDecision":
        return cls(PermissionBehavior.DENY, message)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PermissionDecision":
        """Parse a UI resolution ``{behavior: allow|deny, message?}``; anything but allow denies."""
        allowed = str(payload.get("behavior", "")).strip().lower() == PermissionBehavior.ALLOW.value
        behavior = PermissionBehavior.ALLOW if allowed else PermissionBehavior.DENY
        return cls(behavior, payload.get("message"))


@dataclass(frozen=True)
class PermissionRequest:
    """A proposed tool call waiting for a decision."""

    request_id: str
    tool_name: str
    tool_input: dict[str, Any]
    created_at: datetime = field(default_factory=utc_now)
    stream_id: str | None = None
    tool_use_id: str | None = None

    @property
    def tool_kind(self) -> ToolKind:
        return classify_tool(self.tool_name)

    def to_event(self) -> dict[str, Any]:
        """UI-facing permission request payload."""
        event: dict[str, Any] = {
            "requestId": self.request_id,
            "toolName": self.tool_name,
            "toolInput": self.tool_input,
            "toolKind": self.tool_kind.value,
        }
        if self.stream_id:
            event["streamId"] = self.stream_id
        if self.tool_use_id:
            event["toolUseID"] = self.tool_use_id
        return event
