"""UI Event Sink Port - outbound channel from the core to the UI."""

from abc import ABC, abstractmethod

from codenova.domain.events.types import AgentChunk, ChatChunk
from codenova.domain.model.agent.permission import PermissionRequest


class EventSinkPort(ABC):
    """
    Receives everything the controllers emit for the UI.

    One sink carries one ordered stream; agent chunks keep the order in
    which the agent process produced the underlying events.
    """

    @abstractmethod
    async def send_agent_chunk(self, chunk: AgentChunk) -> None:
        """Deliver an agent-path chunk."""

    @abstractmethod
    async def send_chat_chunk(self, chunk: ChatChunk) -> None:
        """Deliver a chat-path chunk."""

    @abstractmethod
    async def send_permission_request(self, request: PermissionRequest) -> None:
        """Ask the reviewer to approve or deny a tool call."""
