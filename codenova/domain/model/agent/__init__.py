"""Agent bounded context - sessions and tool permission requests."""

from codenova.domain.model.agent.agent_session import (
    AgentLoopState,
    AgentRunResult,
    AgentSession,
)
from codenova.domain.model.agent.permission import (
    PermissionBehavior,
    PermissionDecision,
    PermissionRequest,
    ToolKind,
    classify_tool,
)

__all__ = [
    "AgentLoopState",
    "AgentRunResult",
    "AgentSession",
    "PermissionBehavior",
    "PermissionDecision",
    "PermissionRequest",
    "ToolKind",
    "classify_tool",
]
