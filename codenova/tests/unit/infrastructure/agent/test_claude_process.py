"""Tests for the Claude Agent SDK adapter's pure translation helpers."""

import pytest
from claude_agent_sdk import AssistantMessage, TextBlock, ToolResultBlock, ToolUseBlock, UserMessage
from claude_agent_sdk.types import StreamEvent

from codenova.infrastructure.agent.process.claude_process import ClaudeAgentProcess, render_prompt
from codenova.infrastructure.agent.process.events import ProcessEventType


@pytest.mark.unit
class TestRenderPrompt:
    def test_single_message(self):
        assert render_prompt([{"role": "user", "content": "fix the tests"}]) == "fix the tests"

    def test_history_is_replayed_before_latest(self):
        prompt = render_prompt(
            [
                {"role": "user", "content": "what is in src?"},
                {"role": "assistant", "content": "three modules"},
                {"role": "user", "content": "refactor the first"},
            ]
        )

        assert prompt.startswith("<conversation_history>")
        assert "User: what is in src?" in prompt
        assert "Assistant: three modules" in prompt
        assert prompt.endswith("refactor the first")

    def test_block_content(self):
        prompt = render_prompt([{"role": "user", "content": [{"type": "text", "text": "hi"}]}])

        assert prompt == "hi"

    def test_empty(self):
        assert render_prompt([]) == ""


@pytest.mark.unit
class TestTranslate:
    def test_text_delta_stream_event(self):
        message = StreamEvent(
            uuid="u1",
            session_id="sess",
            event={"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}},
        )

        (event,) = ClaudeAgentProcess._translate(message, {})

        assert event.type == ProcessEventType.TEXT_DELTA
        assert event.text == "Hi"

    def test_other_stream_events_are_ignored(self):
        message = StreamEvent(uuid="u1", session_id="sess", event={"type": "message_start"})

        assert ClaudeAgentProcess._translate(message, {}) == []

    def test_tool_use_then_result_carries_tool_name(self):
        names: dict[str, str] = {}
        assistant = AssistantMessage(
            content=[
                TextBlock(text="Let me look"),
                ToolUseBlock(id="toolu_1", name="Bash", input={"command": "ls"}),
            ],
            model="claude-sonnet-4",
        )
        user = UserMessage(
            content=[ToolResultBlock(tool_use_id="toolu_1", content="a.py\nb.py", is_error=False)]
        )

        (tool_use,) = ClaudeAgentProcess._translate(assistant, names)
        (tool_result,) = ClaudeAgentProcess._translate(user, names)

        assert tool_use.type == ProcessEventType.TOOL_USE
        assert tool_use.tool_input == {"command": "ls"}
        assert tool_result.type == ProcessEventType.TOOL_RESULT
        assert tool_result.tool_name == "Bash"
        assert tool_result.text == "a.py\nb.py"

    def test_structured_tool_result_content(self):
        user = UserMessage(
            content=[ToolResultBlock(tool_use_id="t", content=[{"type": "text", "text": "done"}])]
        )

        (event,) = ClaudeAgentProcess._translate(user, {"t": "Write"})

        assert event.text == "done"
        assert event.tool_name == "Write"

    def test_plain_user_message_is_ignored(self):
        assert ClaudeAgentProcess._translate(UserMessage(content="hello"), {}) == []
