"""Human-in-the-loop permission gate for agent tool calls."""

from codenova.infrastructure.agent.permission.gate import (
    DEFAULT_DENY_MESSAGE,
    TIMEOUT_DENY_MESSAGE,
    PermissionGate,
    to_hook_response,
)

__all__ = ["DEFAULT_DENY_MESSAGE", "TIMEOUT_DENY_MESSAGE", "PermissionGate", "to_hook_response"]
