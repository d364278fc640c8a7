"""CodeNova orchestration core: streaming chat turns and a permission-gated coding agent."""

__version__ = "0.1.0"
