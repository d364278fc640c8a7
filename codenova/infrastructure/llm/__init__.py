"""LLM transport, dialect resolution, stream decoding and cost tracking."""
