"""
Claude Agent SDK adapter.

Runs the agent CLI through ``claude_agent_sdk.query`` with interactive
permission prompts bypassed and a PreToolUse hook that defers every tool
call to the approver.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    HookMatcher,
    ResultMessage,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
    query,
)
from claude_agent_sdk.types import StreamEvent

from codenova.infrastructure.agent.permission.gate import to_hook_response
from codenova.infrastructure.agent.process.events import ProcessEvent
from codenova.infrastructure.agent.process.port import (
    AgentProcess,
    AgentProcessRequest,
    ToolApprover,
)

logger = logging.getLogger(__name__)


def render_prompt(messages: list[dict[str, Any]]) -> str:
    """
    Flatten a conversation into one prompt.

    The last message is the new instruction; earlier turns are replayed as
    a transcript above it.
    """
    if not messages:
        return ""
    *history, last = messages
    latest = _content_text(last.get("content"))
    if not history:
        return latest

    lines = ["<conversation_history>"]
    for message in history:
        speaker = "User" if message.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {_content_text(message.get('content'))}")
    lines.append("</conversation_history>")
    lines.append("")
    lines.append(latest)
    return "\n".join(lines)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(str(item.get("text", "")))
            elif isinstance(item, str):
                parts.append(item)
        if parts:
            return "\n".join(parts)
    return json.dumps(content, ensure_ascii=False, default=str)


class ClaudeAgentProcess(AgentProcess):
    async def run(
        self, request: AgentProcessRequest, approver: ToolApprover
    ) -> AsyncIterator[ProcessEvent]:
        async def pre_tool_use(
            input_data: dict[str, Any], tool_use_id: str | None, context: Any
        ) -> dict[str, Any]:
            tool_name = input_data.get("tool_name", "")
            tool_input = input_data.get("tool_input") or {}
            logger.debug(f"[ClaudeAgentProcess] PreToolUse hook: {tool_name} ({tool_use_id})")
            decision = await approver(tool_name, tool_input, tool_use_id)
            return to_hook_response(decision)

        options = ClaudeAgentOptions(
            cwd=request.working_directory,
            max_turns=request.max_turns,
            permission_mode="bypassPermissions",
            include_partial_messages=True,
            setting_sources=["project", "local"],
            env=request.env,
            hooks={"PreToolUse": [HookMatcher(matcher=None, hooks=[pre_tool_use])]},
        )
        if request.model:
            options.model = request.model
        if request.system_prompt:
            options.system_prompt = request.system_prompt
        if request.cli_path:
            options.cli_path = request.cli_path

        prompt = render_prompt(request.messages)

        # Hooks are answered over the control channel, which needs a streaming prompt
        async def prompt_stream() -> AsyncIterator[dict[str, Any]]:
            yield {"type": "user", "message": {"role": "user", "content": prompt}}

        tool_names: dict[str, str] = {}
        logger.info(
            f"[ClaudeAgentProcess] Starting query: cwd={request.working_directory}, "
            f"model={request.model or '<default>'}, max_turns={request.max_turns}"
        )
        async with aclosing(query(prompt=prompt_stream(), options=options)) as messages:
            async for message in messages:
                for event in self._translate(message, tool_names):
                    yield event

    @staticmethod
    def _translate(message: Any, tool_names: dict[str, str]) -> list[ProcessEvent]:
        if isinstance(message, StreamEvent):
            event = message.event or {}
            delta = event.get("delta") or {}
            if event.get("type") == "content_block_delta" and delta.get("type") == "text_delta":
                return [ProcessEvent.text_delta(delta.get("text", ""))]
            return []

        if isinstance(message, AssistantMessage):
            # Text already arrived as partial stream events
            events = []
            error = getattr(message, "error", None)
            if error:
                events.append(ProcessEvent.error(str(error)))
            for block in message.content:
                if isinstance(block, ToolUseBlock):
                    tool_names[block.id] = block.name
                    events.append(ProcessEvent.tool_use(block.name, block.id, block.input))
            return events

        if isinstance(message, UserMessage):
            events = []
            content = message.content if isinstance(message.content, list) else []
            for block in content:
                if isinstance(block, ToolResultBlock):
                    events.append(
                        ProcessEvent.tool_result(
                            tool_names.get(block.tool_use_id, ""),
                            _content_text(block.content),
                            tool_use_id=block.tool_use_id,
                            is_error=bool(block.is_error),
                        )
                    )
            return events

        if isinstance(message, ResultMessage):
            return [ProcessEvent.result(message.result, is_error=message.is_error)]

        return []
