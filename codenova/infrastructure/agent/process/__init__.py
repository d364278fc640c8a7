"""External agent process: port, events and the Claude Agent SDK adapter."""

from codenova.infrastructure.agent.process.events import ProcessEvent, ProcessEventType
from codenova.infrastructure.agent.process.port import (
    AgentProcess,
    AgentProcessRequest,
    ToolApprover,
)

__all__ = [
    "AgentProcess",
    "AgentProcessRequest",
    "ProcessEvent",
    "ProcessEventType",
    "ToolApprover",
]
