"""Live assistant turn under construction, plus token accounting value types."""

import logging
from dataclasses import dataclass, field
from typing import Any

from codenova.domain.model.chat.message import Message

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Token usage snapshot for a single turn.

    Wire protocols report cumulative snapshots, so ``merge`` overwrites
    fields that are present instead of summing them.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    estimated: bool = False

    def merge(
        self,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        cache_read_tokens: int | None = None,
        cache_creation_tokens: int | None = None,
    ) -> None:
        if input_tokens is not None:
            self.input_tokens = input_tokens
        if output_tokens is not None:
            self.output_tokens = output_tokens
        if cache_read_tokens is not None:
            self.cache_read_tokens = cache_read_tokens
        if cache_creation_tokens is not None:
            self.cache_creation_tokens = cache_creation_tokens

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "estimated": self.estimated,
        }


@dataclass
class TokenStats:
    """Running totals across the turns of one chat controller."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0

    def add(self, usage: TokenUsage, cost: float) -> None:
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.total_cost += cost

    def reset(self) -> None:
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_cost = 0.0


@dataclass
class StreamingTurn:
    """
    The assistant message a chat turn or agent session is writing into.

    ``is_streaming`` flips from True to False exactly once, through
    ``finalize``; later finalize calls are ignored.
    """

    message: Message
    usage: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    error: str | None = None
    cancelled: bool = False
    _finalized: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        self.message.is_streaming = True

    @property
    def accumulated_text(self) -> str:
        return self.message.content

    @property
    def is_streaming(self) -> bool:
        return self.message.is_streaming

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def append(self, text: str) -> str:
        """Append a delta and return the full text so far."""
        if self._finalized:
            logger.debug(f"Dropping {len(text)} chars appended after finalize")
            return self.message.content
        self.message.content += text
        return self.message.content

    def finalize(self, error: str | None = None, cancelled: bool = False) -> bool:
        """Mark the turn finished. Returns False if it was already finalized."""
        if self._finalized:
            return False
        self._finalized = True
        self.message.is_streaming = False
        self.cancelled = cancelled
        if error:
            self.error = error
            self.message.error = error
        return True
