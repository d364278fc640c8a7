"""Agent session entity and loop lifecycle types."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from codenova.domain.shared_kernel import utc_now

logger = logging.getLogger(__name__)


class AgentLoopState(str, Enum):
    """Agent loop lifecycle. Terminal states are final."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentLoopState.COMPLETED, AgentLoopState.FAILED, AgentLoopState.ABORTED)


# Allowed transitions; anything else is a programming error.
_TRANSITIONS: dict[AgentLoopState, set[AgentLoopState]] = {
    AgentLoopState.IDLE: {AgentLoopState.STARTING},
    AgentLoopState.STARTING: {
        AgentLoopState.RUNNING,
        AgentLoopState.FAILED,
        AgentLoopState.ABORTED,
    },
    AgentLoopState.RUNNING: {
        AgentLoopState.COMPLETED,
        AgentLoopState.FAILED,
        AgentLoopState.ABORTED,
    },
}


@dataclass
class AbortHandle:
    """
    Abort signal for one agent session.

    Setting the handle flags the session as aborted and cancels the task
    consuming the agent process, if one is attached.
    """

    event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None

    @property
    def aborted(self) -> bool:
        return self.event.is_set()

    def attach(self, task: asyncio.Task) -> None:
        self.task = task
        if self.event.is_set():
            task.cancel()

    def abort(self) -> None:
        if self.event.is_set():
            return
        self.event.set()
        if self.task is not None and not self.task.done():
            self.task.cancel()


@dataclass(kw_only=True)
class AgentSession:
    """One live invocation of the agent loop, keyed by its stream id."""

    stream_id: str
    working_directory: str
    abort_handle: AbortHandle = field(default_factory=AbortHandle)
    started_at: datetime = field(default_factory=utc_now)
    state: AgentLoopState = AgentLoopState.IDLE

    def transition(self, new_state: AgentLoopState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(f"Illegal agent state transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[AgentSession] {self.stream_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state


@dataclass
class AgentRunResult:
    """Outcome of one agent loop invocation, returned to the caller."""

    success: bool
    aborted: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.aborted:
            result["aborted"] = True
        if self.error:
            result["error"] = self.error
        return result
