"""Agent Process Port - launches an external tool-using reasoning process."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from codenova.domain.model.agent.permission import PermissionDecision
from codenova.infrastructure.agent.process.events import ProcessEvent

# (tool_name, tool_input, tool_use_id) -> decision; awaited before every tool call
ToolApprover = Callable[[str, dict[str, Any], str | None], Awaitable[PermissionDecision]]


@dataclass
class AgentProcessRequest:
    """Launch parameters for one agent session."""

    messages: list[dict[str, Any]]
    working_directory: str
    env: dict[str, str] = field(default_factory=dict)
    model: str | None = None
    system_prompt: str | None = None
    max_turns: int = 20
    cli_path: str | None = None


class AgentProcess(ABC):
    """
    Abstract agent process.

    Implementations run the process with its own interactive permission
    prompts bypassed and call ``approver`` from a pre-tool-use hook, so the
    tool does not execute until the returned decision allows it.
    """

    @abstractmethod
    def run(self, request: AgentProcessRequest, approver: ToolApprover) -> AsyncIterator[ProcessEvent]:
        """
        Start the process and yield its events in emission order.

        The final event is a ``RESULT``. Cancelling the consumer must stop
        the process.
        """
