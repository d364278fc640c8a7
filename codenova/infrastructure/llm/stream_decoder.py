"""
Stream Decoder - turns provider bytes into normalized semantic events.

Bytes arrive at arbitrary granularity. A carry-over buffer keeps the last,
possibly incomplete line until the next chunk completes it, so any chunking
of the same bytes yields the same events. Each ``data:`` line is parsed as
dialect-specific JSON by a pure per-dialect mapper.

Normalized events:
- text_delta: incremental assistant text
- usage: cumulative token snapshot (fields absent from the frame stay None)
- end: end of stream, emitted exactly once
"""

import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from codenova.domain.exceptions import TransportError
from codenova.infrastructure.llm.provider import Dialect

logger = logging.getLogger(__name__)

DATA_PREFIX = b"data:"
DONE_SENTINEL = "[DONE]"


class DecodedEventKind(str, Enum):
    TEXT_DELTA = "text_delta"
    USAGE = "usage"
    END = "end"


@dataclass(frozen=True)
class DecodedEvent:
    kind: DecodedEventKind
    text: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_tokens: int | None = None
    cache_creation_tokens: int | None = None

    @classmethod
    def text_delta(cls, text: str) -> "DecodedEvent":
        return cls(DecodedEventKind.TEXT_DELTA, text=text)

    @classmethod
    def usage(
        cls,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        cache_read_tokens: int | None = None,
        cache_creation_tokens: int | None = None,
    ) -> "DecodedEvent":
        return cls(
            DecodedEventKind.USAGE,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_read_tokens=cache_read_tokens,
            cache_creation_tokens=cache_creation_tokens,
        )

    @classmethod
    def end(cls) -> "DecodedEvent":
        return cls(DecodedEventKind.END)


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _usage_event(
    input_tokens: Any = None,
    output_tokens: Any = None,
    cache_read_tokens: Any = None,
    cache_creation_tokens: Any = None,
) -> DecodedEvent | None:
    event = DecodedEvent.usage(
        input_tokens=_opt_int(input_tokens),
        output_tokens=_opt_int(output_tokens),
        cache_read_tokens=_opt_int(cache_read_tokens),
        cache_creation_tokens=_opt_int(cache_creation_tokens),
    )
    if all(
        v is None
        for v in (
            event.input_tokens,
            event.output_tokens,
            event.cache_read_tokens,
            event.cache_creation_tokens,
        )
    ):
        return None
    return event


# ============================================================================
# Dialect mappers (pure functions: parsed JSON -> normalized events)
# ============================================================================


def _anthropic_usage(usage: Any) -> DecodedEvent | None:
    if not isinstance(usage, dict):
        return None
    return _usage_event(
        usage.get("input_tokens"),
        usage.get("output_tokens"),
        usage.get("cache_read_input_tokens"),
        usage.get("cache_creation_input_tokens"),
    )


def map_anthropic_event(data: dict[str, Any]) -> list[DecodedEvent]:
    event_type = data.get("type")

    if event_type == "content_block_delta":
        delta = data.get("delta") or {}
        text = delta.get("text")
        if delta.get("type", "text_delta") == "text_delta" and isinstance(text, str) and text:
            return [DecodedEvent.text_delta(text)]
        return []

    if event_type == "message_start":
        usage = _anthropic_usage((data.get("message") or {}).get("usage"))
        return [usage] if usage else []

    if event_type == "message_delta":
        usage = _anthropic_usage(data.get("usage"))
        return [usage] if usage else []

    if event_type == "message_stop":
        return [DecodedEvent.end()]

    if event_type == "error":
        error = data.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        raise TransportError(
            error.get("message") or "Provider reported a stream error",
            error_type=error.get("type"),
        )

    return []


def _openai_usage(usage: Any) -> DecodedEvent | None:
    if not isinstance(usage, dict):
        return None
    details = usage.get("prompt_tokens_details") or {}
    return _usage_event(
        usage.get("prompt_tokens"),
        usage.get("completion_tokens"),
        details.get("cached_tokens") if isinstance(details, dict) else None,
    )


def _choice_text(choice: dict[str, Any], key: str) -> str | None:
    part = choice.get(key)
    if not isinstance(part, dict):
        return None
    content = part.get("content")
    return content if isinstance(content, str) and content else None


def map_openai_event(data: dict[str, Any]) -> list[DecodedEvent]:
    events: list[DecodedEvent] = []
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        content = _choice_text(choices[0], "delta")
        # Some gateways send whole messages instead of deltas
        if content is None:
            content = _choice_text(choices[0], "message")
        if content:
            events.append(DecodedEvent.text_delta(content))

    usage = _openai_usage(data.get("usage"))
    if usage:
        events.append(usage)

    if "error" in data and not choices:
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise TransportError(message or "Provider reported a stream error")
    return events


DIALECT_MAPPERS: dict[Dialect, Callable[[dict[str, Any]], list[DecodedEvent]]] = {
    Dialect.ANTHROPIC: map_anthropic_event,
    Dialect.OPENAI_COMPATIBLE: map_openai_event,
}


# ============================================================================
# Incremental framing
# ============================================================================


class StreamDecoder:
    """
    Incremental SSE decoder for one response.

    One instance per call; it is not reusable across responses.
    """

    def __init__(self, dialect: Dialect) -> None:
        self._dialect = dialect
        self._mapper = DIALECT_MAPPERS[dialect]
        self._buffer = b""
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes) -> list[DecodedEvent]:
        """Consume one chunk; returns the events completed by it."""
        if self._finished or not chunk:
            return []

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")

        events: list[DecodedEvent] = []
        for line in lines:
            events.extend(self._process_line(line))
            if self._finished:
                self._buffer = b""
                break
        return events

    def finish(self) -> list[DecodedEvent]:
        """Flush the trailing line and emit ``end`` if not already emitted."""
        events: list[DecodedEvent] = []
        if not self._finished and self._buffer:
            line, self._buffer = self._buffer, b""
            events.extend(self._process_line(line))
        if not self._finished:
            self._finished = True
            events.append(DecodedEvent.end())
        return events

    def _process_line(self, raw_line: bytes) -> list[DecodedEvent]:
        line = raw_line.rstrip(b"\r")
        if not line.startswith(DATA_PREFIX):
            return []

        payload = line[len(DATA_PREFIX) :].decode("utf-8", errors="replace").strip()
        if payload == DONE_SENTINEL:
            self._finished = True
            return [DecodedEvent.end()]

        try:
            data = json.loads(payload)
        except ValueError:
            logger.debug(f"[StreamDecoder] Skipping malformed frame: {payload[:200]!r}")
            return []
        if not isinstance(data, dict):
            return []

        try:
            events = self._mapper(data)
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            logger.debug(
                f"[StreamDecoder] Skipping frame with unexpected shape ({e}): {payload[:200]!r}"
            )
            return []
        if any(e.kind == DecodedEventKind.END for e in events):
            self._finished = True
        return events


async def decode_stream(
    chunks: AsyncIterator[bytes], dialect: Dialect
) -> AsyncIterator[DecodedEvent]:
    """Decode a byte stream lazily; ``end`` is always the last event."""
    decoder = StreamDecoder(dialect)
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
        if decoder.finished:
            return
    for event in decoder.finish():
        yield event


def decode_buffered(body: bytes | str, dialect: Dialect) -> list[DecodedEvent]:
    """
    Decode a non-streaming JSON response into the same normalized events.

    A malformed body yields only ``end``.
    """
    try:
        data = json.loads(body)
    except ValueError:
        logger.debug("[StreamDecoder] Buffered body is not JSON")
        return [DecodedEvent.end()]
    if not isinstance(data, dict):
        return [DecodedEvent.end()]

    events: list[DecodedEvent] = []
    if dialect is Dialect.ANTHROPIC:
        text = "".join(
            block["text"]
            for block in data.get("content") or []
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        )
        usage = _anthropic_usage(data.get("usage"))
    else:
        choices = data.get("choices")
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None
        text = message.get("content") if isinstance(message, dict) else None
        if not isinstance(text, str):
            text = ""
        usage = _openai_usage(data.get("usage"))

    if text:
        events.append(DecodedEvent.text_delta(text))
    if usage:
        events.append(usage)
    events.append(DecodedEvent.end())
    return events
