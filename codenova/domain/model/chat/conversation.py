"""Conversation aggregate: ordered messages with at most one live turn."""

from dataclasses import dataclass, field

from codenova.domain.model.chat.message import Message, MessageRole
from codenova.domain.model.chat.streaming_turn import StreamingTurn
from codenova.domain.shared_kernel import DomainException, Entity


class TurnAlreadyStreamingError(DomainException):
    """Raised when a second live turn is opened on the same conversation."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} already has a streaming turn")


@dataclass(kw_only=True)
class Conversation(Entity):
    """A conversation between the user and the assistant, in insertion order."""

    messages: list[Message] = field(default_factory=list)
    streaming_turn: StreamingTurn | None = None

    def append(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def add_user_message(self, content: str) -> Message:
        return self.append(Message(role=MessageRole.USER, content=content))

    @property
    def has_live_turn(self) -> bool:
        return self.streaming_turn is not None and self.streaming_turn.is_streaming

    def open_turn(self) -> StreamingTurn:
        """Append an empty streaming assistant message and return its turn."""
        if self.has_live_turn:
            raise TurnAlreadyStreamingError(self.id)
        message = self.append(Message(role=MessageRole.ASSISTANT))
        self.streaming_turn = StreamingTurn(message=message)
        return self.streaming_turn

    def history(self, exclude: Message | None = None) -> list[Message]:
        """Finished user/assistant messages, optionally excluding one message."""
        return [
            m
            for m in self.messages
            if m is not exclude and not m.is_streaming and (m.content or m.role == MessageRole.USER)
        ]

    def find(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None
