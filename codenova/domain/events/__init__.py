from codenova.domain.events.types import AgentChunk, AgentChunkType, ChatChunk

__all__ = ["AgentChunk", "AgentChunkType", "ChatChunk"]
