"""Chat bounded context - messages, streaming turns and token accounting."""

from codenova.domain.model.chat.attachment import Attachment, AttachmentKind
from codenova.domain.model.chat.conversation import Conversation, TurnAlreadyStreamingError
from codenova.domain.model.chat.message import Message, MessageRole, ToolApproval
from codenova.domain.model.chat.streaming_turn import StreamingTurn, TokenStats, TokenUsage

__all__ = [
    "Attachment",
    "AttachmentKind",
    "Conversation",
    "Message",
    "MessageRole",
    "StreamingTurn",
    "TokenStats",
    "TokenUsage",
    "ToolApproval",
    "TurnAlreadyStreamingError",
]
