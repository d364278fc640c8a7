"""Tests for ChatSessionController."""

import asyncio
import json

import pytest

from codenova.application.services.chat_session_service import (
    ChatSessionController,
    estimate_tokens,
)
from codenova.domain.exceptions import TransportError
from codenova.domain.model.chat.attachment import Attachment, AttachmentKind
from codenova.domain.model.chat.conversation import TurnAlreadyStreamingError
from codenova.domain.ports.services.file_service_port import FileReadResult, FileServicePort
from codenova.infrastructure.adapters.settings_credentials import SettingsCredentials
from codenova.infrastructure.llm.transport import RawResponse, TransportAdapter


def sse(payload: dict) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode()


def text_delta(text: str) -> bytes:
    return sse({"type": "content_block_delta", "delta": {"type": "text_delta", "text": text}})


MESSAGE_START = {"type": "message_start", "message": {"usage": {"input_tokens": 1000}}}
USAGE_FRAMES = [
    sse(MESSAGE_START),
    sse({"type": "message_delta", "usage": {"output_tokens": 500}}),
]
STOP = sse({"type": "message_stop"})


class FakeTransport(TransportAdapter):
    """Replays canned SSE frames; ``hold`` pauses the stream after the frames."""

    def __init__(self, frames=(), hold: asyncio.Event | None = None, error=None, body=None):
        self.frames = list(frames)
        self.hold = hold
        self.error = error
        self.body = body
        self.requests: list[tuple[str, dict, dict]] = []
        self.closed = False

    async def send(self, endpoint, headers, body):
        self.requests.append((endpoint, headers, body))
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return RawResponse(status_code=200, body=self.body)

        async def stream():
            for frame in self.frames:
                yield frame
            if self.hold is not None:
                await self.hold.wait()

        async def close():
            self.closed = True

        return RawResponse(status_code=200, stream=stream(), _close=close)


class FakeFileService(FileServicePort):
    def __init__(self, files: dict[str, str]):
        self.files = files

    async def read_text(self, path):
        if path in self.files:
            return FileReadResult(success=True, content=self.files[path])
        return FileReadResult(success=False, error="No such file")

    async def write_file(self, path, content):
        raise NotImplementedError


@pytest.fixture
def make_controller(settings, channel):
    def _make(transport, **kwargs):
        return ChatSessionController(
            transport, SettingsCredentials(settings), sink=channel, **kwargs
        )

    return _make


def chat_chunks(channel):
    return [m.payload for m in channel.drain()]


@pytest.mark.unit
class TestChatTurn:
    @pytest.mark.asyncio
    async def test_streams_text_and_reports_usage(self, make_controller, conversation, channel):
        transport = FakeTransport(
            [USAGE_FRAMES[0], text_delta("Hel"), text_delta("lo"), USAGE_FRAMES[1], STOP]
        )
        controller = make_controller(transport)

        handle = await controller.start_turn(conversation, "hi")
        turn = await handle.wait()

        assert turn.accumulated_text == "Hello"
        assert not turn.is_streaming
        assert turn.error is None
        assert turn.usage.input_tokens == 1000
        assert turn.usage.output_tokens == 500
        assert not turn.usage.estimated
        assert turn.cost == pytest.approx(0.0105)
        assert controller.stats.total_cost == pytest.approx(0.0105)
        assert transport.closed

        chunks = chat_chunks(channel)
        assert [(c.text, c.full) for c in chunks[:2]] == [("Hel", "Hel"), ("lo", "Hello")]
        assert chunks[-1].done
        assert chunks[-1].usage["cost"] == pytest.approx(0.0105)

    @pytest.mark.asyncio
    async def test_request_shape(self, make_controller, conversation):
        transport = FakeTransport([STOP])
        conversation.add_user_message("earlier")
        controller = make_controller(transport, max_tokens=128)

        await (await controller.start_turn(conversation, "now")).wait()

        endpoint, headers, body = transport.requests[0]
        assert endpoint == "https://api.anthropic.com/v1/messages"
        assert headers["x-api-key"] == "test-key"
        assert body["stream"] is True
        assert body["max_tokens"] == 128
        assert [m["content"] for m in body["messages"]] == ["earlier", "now"]

    @pytest.mark.asyncio
    async def test_usage_is_estimated_when_absent(self, make_controller, conversation):
        controller = make_controller(FakeTransport([text_delta("abcdefgh"), STOP]))

        turn = await (await controller.start_turn(conversation, "12345")).wait()

        assert turn.usage.estimated
        assert turn.usage.input_tokens == estimate_tokens(5) == 2
        assert turn.usage.output_tokens == 2

    @pytest.mark.asyncio
    async def test_buffered_body(self, make_controller, conversation):
        body = json.dumps(
            {
                "content": [{"type": "text", "text": "whole"}],
                "usage": {"input_tokens": 3, "output_tokens": 1},
            }
        ).encode()
        controller = make_controller(FakeTransport(body=body))

        turn = await (await controller.start_turn(conversation, "hi")).wait()

        assert turn.accumulated_text == "whole"
        assert turn.usage.input_tokens == 3

    @pytest.mark.asyncio
    async def test_second_live_turn_is_rejected(self, make_controller, conversation):
        hold = asyncio.Event()
        controller = make_controller(FakeTransport([text_delta("a")], hold=hold))
        handle = await controller.start_turn(conversation, "one")
        count = len(conversation.messages)

        with pytest.raises(TurnAlreadyStreamingError):
            await controller.start_turn(conversation, "two")

        assert len(conversation.messages) == count
        assert "two" not in [m.content for m in conversation.messages]

        hold.set()
        await handle.wait()


@pytest.mark.unit
class TestChatCancellation:
    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_text(self, make_controller, conversation, channel):
        hold = asyncio.Event()
        transport = FakeTransport([text_delta("partial")], hold=hold)
        controller = make_controller(transport)
        handle = await controller.start_turn(conversation, "hi")

        while not handle.turn.accumulated_text:
            await asyncio.sleep(0)
        assert controller.cancel(handle)
        turn = await handle.wait()

        assert turn.accumulated_text == "partial"
        assert turn.cancelled
        assert turn.error is None
        assert not turn.is_streaming
        assert transport.closed
        last = chat_chunks(channel)[-1]
        assert last.done
        assert last.error is None

    @pytest.mark.asyncio
    async def test_cancel_before_first_step(self, make_controller, conversation):
        controller = make_controller(FakeTransport([STOP]))
        handle = await controller.start_turn(conversation, "hi")

        controller.cancel(handle)
        turn = await handle.wait()

        assert turn.cancelled
        assert not turn.is_streaming

    @pytest.mark.asyncio
    async def test_cancel_finished_turn_is_noop(self, make_controller, conversation):
        controller = make_controller(FakeTransport([STOP]))
        handle = await controller.start_turn(conversation, "hi")
        await handle.wait()

        assert not controller.cancel(handle)


@pytest.mark.unit
class TestChatFailures:
    @pytest.mark.asyncio
    async def test_transport_error_sets_error(self, make_controller, conversation, channel):
        error = TransportError("overloaded", status_code=529)
        transport = FakeTransport(error=error)
        controller = make_controller(transport)

        turn = await (await controller.start_turn(conversation, "hi")).wait()

        assert turn.error == "overloaded (HTTP 529)"
        assert turn.message.error == "overloaded (HTTP 529)"
        assert not turn.is_streaming
        assert len(transport.requests) == 1
        assert chat_chunks(channel)[-1].error == "overloaded (HTTP 529)"

    @pytest.mark.asyncio
    async def test_missing_api_key(self, settings, channel, conversation):
        settings.api_key = ""
        transport = FakeTransport([STOP])
        controller = ChatSessionController(transport, SettingsCredentials(settings), sink=channel)

        turn = await (await controller.start_turn(conversation, "hi")).wait()

        assert turn.error == "API key is not configured"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_in_stream_error_event(self, make_controller, conversation):
        frames = [text_delta("so far"), sse({"type": "error", "error": {"message": "Overloaded"}})]
        controller = make_controller(FakeTransport(frames))

        turn = await (await controller.start_turn(conversation, "hi")).wait()

        assert turn.accumulated_text == "so far"
        assert "Overloaded" in turn.error


@pytest.mark.unit
class TestAttachments:
    @pytest.mark.asyncio
    async def test_file_contents_are_inlined(self, make_controller, conversation):
        transport = FakeTransport([STOP])
        controller = make_controller(
            transport, file_service=FakeFileService({"/src/a.py": "print(1)"})
        )

        await (
            await controller.start_turn(
                conversation,
                "review ",
                attachments=[
                    Attachment("/src/a.py"),
                    Attachment("/src/missing.py"),
                    Attachment("/img/shot.png", AttachmentKind.IMAGE),
                ],
            )
        ).wait()

        content = conversation.messages[0].content
        assert content.startswith("review\n\n")
        assert '<file_context path="/src/a.py">\nprint(1)\n</file_context>' in content
        assert "[Failed to read file: missing.py - No such file]" in content
        assert "[Image attachment not read: shot.png]" in content

    @pytest.mark.asyncio
    async def test_without_file_service_lists_names(self, make_controller, conversation):
        controller = make_controller(FakeTransport([STOP]))

        await (
            await controller.start_turn(conversation, "see", attachments=[Attachment("/x/y.txt")])
        ).wait()

        assert conversation.messages[0].content == "see\n\n[Attached files: y.txt]"
