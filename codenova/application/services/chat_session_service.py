"""
Chat Session Service - drives one streamed chat turn at a time per conversation.

A turn is single-shot: one transport request, decoded incrementally into the
assistant message. Transport failures finalize the turn with ``error`` set
and are never retried. Cancellation finalizes the turn with its partial
text and no error.
"""

import asyncio
import logging
import math
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from codenova.domain.events.types import ChatChunk
from codenova.domain.exceptions import ConfigurationError, TransportError
from codenova.domain.model.chat.attachment import Attachment, AttachmentKind
from codenova.domain.model.chat.conversation import Conversation, TurnAlreadyStreamingError
from codenova.domain.model.chat.streaming_turn import StreamingTurn, TokenStats, TokenUsage
from codenova.domain.ports.services.credentials_port import Credentials, CredentialsPort
from codenova.domain.ports.services.event_sink_port import EventSinkPort
from codenova.domain.ports.services.file_service_port import FileServicePort
from codenova.infrastructure.adapters.settings_credentials import merge_overrides
from codenova.infrastructure.llm.cost_tracker import CostTracker
from codenova.infrastructure.llm.provider import ProviderRoute, resolve_route
from codenova.infrastructure.llm.stream_decoder import (
    DecodedEvent,
    DecodedEventKind,
    decode_buffered,
    decode_stream,
)
from codenova.infrastructure.llm.transport import RawResponse, TransportAdapter

logger = logging.getLogger(__name__)


@dataclass
class TurnHandle:
    """Handle to one in-flight chat turn."""

    turn: StreamingTurn
    task: asyncio.Task

    @property
    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> bool:
        return self.task.cancel()

    async def wait(self) -> StreamingTurn:
        """Wait for the turn to finish, however it finishes."""
        await asyncio.wait({self.task})
        return self.turn


def estimate_tokens(text_length: int) -> int:
    return math.ceil(text_length / 4)


class ChatSessionController:
    """
    Chat Session Controller.

    Example:
        controller = ChatSessionController(transport, credentials, sink=channel)
        handle = await controller.start_turn(conversation, "Explain this diff")
        turn = await handle.wait()
    """

    def __init__(
        self,
        transport: TransportAdapter,
        credentials: CredentialsPort,
        sink: EventSinkPort | None = None,
        file_service: FileServicePort | None = None,
        cost_tracker: CostTracker | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            transport: Adapter used for the single request of each turn
            credentials: Config service read once per turn
            sink: Receives incremental chat chunks, if set
            file_service: Reads file attachments
            cost_tracker: Rate table for the advisory cost estimate
            max_tokens: Completion token limit sent with each request
            temperature: Sampling temperature; None uses the model default
        """
        self._transport = transport
        self._credentials = credentials
        self._sink = sink
        self._file_service = file_service
        self._cost_tracker = cost_tracker or CostTracker()
        self._max_tokens = max_tokens
        self._temperature = temperature
        self.stats = TokenStats()

    async def start_turn(
        self,
        conversation: Conversation,
        content: str,
        overrides: dict[str, Any] | None = None,
        attachments: list[Attachment] | None = None,
    ) -> TurnHandle:
        """
        Append the user message and a streaming assistant placeholder, then
        start the request in a background task.

        Raises TurnAlreadyStreamingError if the conversation has a live turn.
        """
        if conversation.has_live_turn:
            raise TurnAlreadyStreamingError(conversation.id)

        if attachments:
            content = content.strip() + await self._render_attachments(attachments)

        user_message = conversation.add_user_message(content)
        turn = conversation.open_turn()
        wire_messages = [m.to_api_dict() for m in conversation.history(exclude=turn.message)]
        logger.debug(
            f"[ChatSession] Starting turn {turn.message.id} in {conversation.id} "
            f"with {len(wire_messages)} message(s), user message {user_message.id}"
        )

        task = asyncio.create_task(self._run_turn(turn, wire_messages, overrides))
        task.add_done_callback(lambda t: _finalize_if_unfinished(turn, t))
        return TurnHandle(turn=turn, task=task)

    def cancel(self, handle: TurnHandle) -> bool:
        """Abort the in-flight request; partial text is kept."""
        if handle.done:
            return False
        logger.info(f"[ChatSession] Cancelling turn {handle.turn.message.id}")
        return handle.cancel()

    def reset_stats(self) -> None:
        self.stats.reset()
        self._cost_tracker.reset()

    async def _run_turn(
        self,
        turn: StreamingTurn,
        wire_messages: list[dict[str, str]],
        overrides: dict[str, Any] | None,
    ) -> None:
        usage_seen = False
        route: ProviderRoute | None = None
        try:
            credentials = self._resolve_credentials(overrides)
            route = resolve_route(credentials)
            body = route.build_body(
                wire_messages,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                stream=True,
            )

            response = await self._transport.send(route.endpoint, route.headers, body)
            try:
                async for event in self._events(response, route):
                    if event.kind == DecodedEventKind.TEXT_DELTA:
                        full = turn.append(event.text or "")
                        await self._emit(ChatChunk(text=event.text or "", full=full))
                    elif event.kind == DecodedEventKind.USAGE:
                        usage_seen = True
                        turn.usage.merge(
                            input_tokens=event.input_tokens,
                            output_tokens=event.output_tokens,
                            cache_read_tokens=event.cache_read_tokens,
                            cache_creation_tokens=event.cache_creation_tokens,
                        )
                    elif event.kind == DecodedEventKind.END:
                        break
            finally:
                await response.aclose()

            if not usage_seen:
                prompt_chars = sum(len(m["content"]) for m in wire_messages)
                turn.usage.merge(
                    input_tokens=estimate_tokens(prompt_chars),
                    output_tokens=estimate_tokens(len(turn.accumulated_text)),
                )
                turn.usage.estimated = True

            result = self._cost_tracker.calculate(turn.usage, route.model)
            turn.cost = result.cost
            self.stats.add(turn.usage, result.cost)
            turn.finalize()
            logger.info(
                f"[ChatSession] Turn {turn.message.id} completed: "
                f"{turn.usage.input_tokens} in / {turn.usage.output_tokens} out, "
                f"cost=${result.cost:.6f}{' (estimated)' if turn.usage.estimated else ''}"
            )
            await self._emit(
                ChatChunk(
                    full=turn.accumulated_text,
                    done=True,
                    usage={**turn.usage.to_dict(), "cost": result.cost},
                )
            )
        except asyncio.CancelledError:
            turn.finalize(cancelled=True)
            logger.info(f"[ChatSession] Turn {turn.message.id} cancelled")
            await self._emit(ChatChunk(full=turn.accumulated_text, done=True))
            raise
        except ConfigurationError as e:
            logger.warning(f"[ChatSession] Turn {turn.message.id} not started: {e}")
            await self._fail(turn, str(e))
        except TransportError as e:
            logger.warning(f"[ChatSession] Turn {turn.message.id} failed: {e.user_message()}")
            await self._fail(turn, e.user_message())
        except Exception as e:
            logger.error(f"[ChatSession] Turn {turn.message.id} failed: {e}", exc_info=True)
            await self._fail(turn, str(e) or type(e).__name__)

    async def _events(
        self, response: RawResponse, route: ProviderRoute
    ) -> AsyncIterator[DecodedEvent]:
        if response.is_streaming:
            async for event in decode_stream(response.stream, route.dialect):
                yield event
        else:
            for event in decode_buffered(response.body or b"", route.dialect):
                yield event

    def _resolve_credentials(self, overrides: dict[str, Any] | None) -> Credentials:
        credentials = merge_overrides(self._credentials.get_credentials(), overrides)
        if not credentials.api_key:
            raise ConfigurationError("API key is not configured")
        if not credentials.base_url:
            raise ConfigurationError("API base URL is not configured")
        return credentials

    async def _fail(self, turn: StreamingTurn, message: str) -> None:
        turn.finalize(error=message)
        await self._emit(ChatChunk(full=turn.accumulated_text, done=True, error=message))

    async def _emit(self, chunk: ChatChunk) -> None:
        if self._sink is not None:
            await self._sink.send_chat_chunk(chunk)

    async def _render_attachments(self, attachments: list[Attachment]) -> str:
        if self._file_service is None:
            names = ", ".join(a.display_name for a in attachments)
            return f"\n\n[Attached files: {names}]"

        blocks = []
        for attachment in attachments:
            if attachment.kind == AttachmentKind.IMAGE:
                blocks.append(f"[Image attachment not read: {attachment.display_name}]")
                continue
            result = await self._file_service.read_text(attachment.path)
            if result.success and result.content:
                blocks.append(
                    f'<file_context path="{attachment.path}">\n{result.content}\n</file_context>'
                )
            else:
                blocks.append(
                    f"[Failed to read file: {attachment.display_name} - "
                    f"{result.error or 'unknown error'}]"
                )
        return "\n\n" + "\n\n".join(blocks)


def _finalize_if_unfinished(turn: StreamingTurn, task: asyncio.Task) -> None:
    # A task cancelled before its first step never runs its own handlers
    if task.cancelled():
        turn.finalize(cancelled=True)
