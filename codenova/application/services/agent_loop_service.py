"""
Agent Loop Service - runs one autonomous agent session per stream id.

State machine:
    IDLE -> STARTING -> RUNNING -> COMPLETED | FAILED | ABORTED

Every process event is mapped to one UI chunk, in emission order. Tool
calls are suspended in the permission gate until a human decides. Reaching
any terminal state releases the registry entry and abandons the session's
pending permission requests.

Cancellation (an explicit stop, or an abort surfacing from the process)
always ends with a ``done`` chunk, never an ``error`` chunk.
"""

import asyncio
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from codenova.domain.events.types import AgentChunk
from codenova.domain.model.agent.agent_session import AgentLoopState, AgentRunResult, AgentSession
from codenova.domain.model.agent.permission import PermissionDecision
from codenova.domain.ports.services.credentials_port import CredentialsPort
from codenova.domain.ports.services.event_sink_port import EventSinkPort
from codenova.infrastructure.adapters.settings_credentials import merge_overrides
from codenova.infrastructure.agent.permission.gate import ABANDONED_MESSAGE, PermissionGate
from codenova.infrastructure.agent.process.events import ProcessEvent, ProcessEventType
from codenova.infrastructure.agent.process.port import AgentProcess, AgentProcessRequest
from codenova.infrastructure.agent.session_registry import AgentSessionRegistry

logger = logging.getLogger(__name__)

ALREADY_RUNNING_MESSAGE = "Agent already running"
NO_SESSION_MESSAGE = "No active agent session"
DEFAULT_FAILURE_MESSAGE = "Agent run failed"


@dataclass
class AgentRunOptions:
    """Per-invocation settings; unset fields fall back to controller defaults."""

    working_directory: str | None = None
    model: str | None = None
    system_prompt: str | None = None
    credential_overrides: dict[str, Any] | None = None


@dataclass
class StopResult:
    success: bool
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.message:
            data["message"] = self.message
        return data


def new_stream_id() -> str:
    return f"agent-{uuid.uuid4().hex[:12]}"


def truncate_result(text: str, limit: int) -> str:
    return text[:limit] if limit > 0 else text


def _looks_like_abort(error: BaseException) -> bool:
    return type(error).__name__ == "AbortError" or "aborted" in str(error).lower()


class AgentLoopController:
    """
    Agent Loop Controller.

    Example:
        controller = AgentLoopController(process, registry, gate, channel, credentials)
        result = await controller.run(messages, stream_id="s1")

        # from elsewhere
        controller.stop("s1")
        controller.resolve_permission(request_id, {"behavior": "deny", "message": "no"})
    """

    def __init__(
        self,
        process: AgentProcess,
        registry: AgentSessionRegistry,
        gate: PermissionGate,
        sink: EventSinkPort,
        credentials: CredentialsPort | None = None,
        working_directory: str = ".",
        max_turns: int = 20,
        tool_result_max_chars: int = 3000,
        cli_path: str | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            process: External agent process launcher
            registry: Live sessions keyed by stream id
            gate: Permission gate consulted before every tool call
            sink: Outbound chunk channel
            credentials: Config service for the process environment
            working_directory: Default cwd for sessions
            max_turns: Agent turn limit per session
            tool_result_max_chars: Cap applied to tool result text
            cli_path: Optional path to the agent executable
        """
        self._process = process
        self._registry = registry
        self._gate = gate
        self._sink = sink
        self._credentials = credentials
        self._working_directory = working_directory
        self._max_turns = max_turns
        self._tool_result_max_chars = tool_result_max_chars
        self._cli_path = cli_path

    @property
    def registry(self) -> AgentSessionRegistry:
        return self._registry

    @property
    def gate(self) -> PermissionGate:
        return self._gate

    async def run(
        self,
        messages: list[dict[str, Any]],
        options: AgentRunOptions | None = None,
        stream_id: str | None = None,
    ) -> AgentRunResult:
        """
        Run one agent session to a terminal state.

        A duplicate start for a live stream id returns a rejected result
        immediately and leaves the running session untouched.
        """
        options = options or AgentRunOptions()
        stream_id = stream_id or new_stream_id()
        session = AgentSession(
            stream_id=stream_id,
            working_directory=options.working_directory or self._working_directory,
        )

        if not self._registry.acquire(session):
            logger.warning(f"[AgentLoop] Session already running for {stream_id}, ignoring duplicate")
            return AgentRunResult(success=False, error=ALREADY_RUNNING_MESSAGE)

        try:
            session.transition(AgentLoopState.STARTING)
            request = self._build_request(messages, options, session)
            consume = asyncio.create_task(self._consume(session, request))
            session.abort_handle.attach(consume)
            try:
                return await consume
            except asyncio.CancelledError:
                if not session.abort_handle.aborted:
                    raise
                # Aborted before the consumer got to run its own handlers
                if not session.state.is_terminal:
                    session.transition(AgentLoopState.ABORTED)
                    await self._emit(AgentChunk.done(stream_id))
                return AgentRunResult(success=True, aborted=True)
        except Exception as e:
            logger.error(f"[AgentLoop] Failed to start session {stream_id}: {e}", exc_info=True)
            if not session.state.is_terminal:
                session.transition(AgentLoopState.FAILED)
            await self._emit(AgentChunk.error_chunk(stream_id, str(e)))
            return AgentRunResult(success=False, error=str(e))
        finally:
            self._registry.release(stream_id, session)
            self._gate.abandon(stream_id)
            logger.info(f"[AgentLoop] Session {stream_id} ended in state {session.state.value}")

    def stop(self, stream_id: str) -> StopResult:
        """
        Abort a live session. Its loop emits ``done`` as it unwinds.

        Pending permission requests are abandoned by the unwinding run, after
        the cancellation has reached the waiting hook.
        """
        if self._registry.abort(stream_id):
            logger.info(f"[AgentLoop] Stop requested for {stream_id}")
            return StopResult(success=True)
        return StopResult(success=False, message=NO_SESSION_MESSAGE)

    def resolve_permission(
        self, request_id: str, decision: PermissionDecision | dict[str, Any]
    ) -> bool:
        """Forward a reviewer decision. Unknown or stale ids are a logged no-op."""
        return self._gate.resolve_permission(request_id, decision)

    def _build_request(
        self, messages: list[dict[str, Any]], options: AgentRunOptions, session: AgentSession
    ) -> AgentProcessRequest:
        env = {"PROMPT": "$ ", "PS1": "$ "}
        if self._credentials is not None:
            credentials = merge_overrides(
                self._credentials.get_credentials(), options.credential_overrides
            )
            if credentials.base_url:
                env["ANTHROPIC_BASE_URL"] = credentials.base_url
            if credentials.api_key:
                env["ANTHROPIC_API_KEY"] = credentials.api_key

        return AgentProcessRequest(
            messages=messages,
            working_directory=session.working_directory,
            env=env,
            model=options.model,
            system_prompt=options.system_prompt,
            max_turns=self._max_turns,
            cli_path=self._cli_path,
        )

    async def _consume(self, session: AgentSession, request: AgentProcessRequest) -> AgentRunResult:
        stream_id = session.stream_id
        has_streamed_text = False
        final: ProcessEvent | None = None

        async def approve(
            tool_name: str, tool_input: dict[str, Any], tool_use_id: str | None
        ) -> PermissionDecision:
            if session.abort_handle.aborted:
                return PermissionDecision.deny(ABANDONED_MESSAGE)
            decision = await self._gate.request_approval(
                tool_name, tool_input, stream_id=stream_id, tool_use_id=tool_use_id
            )
            # A decision that raced the stop must not let the tool run
            if session.abort_handle.aborted:
                return PermissionDecision.deny(ABANDONED_MESSAGE)
            return decision

        logger.info(f"[AgentLoop] Starting session {stream_id} in {request.working_directory}")
        try:
            session.transition(AgentLoopState.RUNNING)
            async with aclosing(self._process.run(request, approve)) as events:
                async for event in events:
                    if session.abort_handle.aborted:
                        break
                    if event.type == ProcessEventType.RESULT:
                        final = event
                    elif await self._forward(stream_id, event):
                        has_streamed_text = True

            if session.abort_handle.aborted:
                logger.info(f"[AgentLoop] Session {stream_id} stopped before completing")
                await self._finish_aborted(session)
                return AgentRunResult(success=True, aborted=True)
            if final is None:
                return await self._finish_failed(session, "Agent process exited without a result")
            if final.is_error:
                return await self._finish_failed(session, final.text or DEFAULT_FAILURE_MESSAGE)

            if not has_streamed_text and final.text:
                await self._emit(AgentChunk.text_chunk(stream_id, final.text))
            session.transition(AgentLoopState.COMPLETED)
            await self._emit(AgentChunk.done(stream_id))
            return AgentRunResult(success=True)
        except asyncio.CancelledError:
            await self._finish_aborted(session)
            raise
        except Exception as e:
            if session.abort_handle.aborted or _looks_like_abort(e):
                logger.info(f"[AgentLoop] Session {stream_id} aborted: {e}")
                await self._finish_aborted(session)
                return AgentRunResult(success=True, aborted=True)
            logger.error(f"[AgentLoop] Session {stream_id} failed: {e}", exc_info=True)
            return await self._finish_failed(session, f"Agent error: {e}")

    async def _forward(self, stream_id: str, event: ProcessEvent) -> bool:
        """Emit the chunk for one non-result event. Returns True if text was streamed."""
        if event.type == ProcessEventType.TEXT_DELTA:
            if event.text:
                await self._emit(AgentChunk.text_chunk(stream_id, event.text))
                return True
        elif event.type == ProcessEventType.TOOL_USE:
            await self._emit(AgentChunk.tool_running(stream_id, event.tool_name or ""))
        elif event.type == ProcessEventType.TOOL_RESULT:
            await self._emit(
                AgentChunk.tool_result(
                    stream_id,
                    event.tool_name or "",
                    truncate_result(event.text or "", self._tool_result_max_chars),
                )
            )
        elif event.type == ProcessEventType.ERROR:
            logger.warning(f"[AgentLoop] In-band error from {stream_id}: {event.text}")
            await self._emit(
                AgentChunk.error_chunk(stream_id, event.text or DEFAULT_FAILURE_MESSAGE)
            )
        return False

    async def _finish_failed(self, session: AgentSession, message: str) -> AgentRunResult:
        if not session.state.is_terminal:
            session.transition(AgentLoopState.FAILED)
            await self._emit(AgentChunk.error_chunk(session.stream_id, message))
        return AgentRunResult(success=False, error=message)

    async def _finish_aborted(self, session: AgentSession) -> None:
        if session.state.is_terminal:
            return
        session.transition(AgentLoopState.ABORTED)
        await self._emit(AgentChunk.done(session.stream_id))

    async def _emit(self, chunk: AgentChunk) -> None:
        await self._sink.send_agent_chunk(chunk)
