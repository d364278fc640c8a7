"""Agent-path infrastructure: session registry, permission gate, agent process."""
