"""
Permission Gate - Future-based approval of agent tool calls.

Flow:
    pre-tool-use hook -> gate.request_approval() -> Future registered, request published
    UI reviewer -> gate.resolve_permission(request_id, decision) -> Future resolves
    no answer within the timeout -> resolved as deny

Pending requests are keyed only by ``request_id``. Each Future is completed
at most once: whichever of resolution, timeout, abandon or sweep arrives
first wins and removes the entry; later attempts are logged no-ops.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from codenova.domain.model.agent.permission import (
    PermissionBehavior,
    PermissionDecision,
    PermissionRequest,
)
from codenova.domain.shared_kernel import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_DENY_MESSAGE = "User denied this action"
TIMEOUT_DENY_MESSAGE = "Permission request timed out"
PUBLISH_FAILED_MESSAGE = "Failed to request permission"
ABANDONED_MESSAGE = "Agent session stopped"

PermissionPublisher = Callable[[PermissionRequest], Awaitable[None]]


@dataclass
class _PendingPermission:
    request: PermissionRequest
    future: asyncio.Future


class PermissionGate:
    """
    Suspends tool-use hooks until a human decision arrives.

    Example:
        gate = PermissionGate(publisher=sink.send_permission_request)

        decision = await gate.request_approval("Bash", {"command": "ls"}, stream_id="s1")
        ...
        gate.resolve_permission(request_id, PermissionDecision.allow())
    """

    def __init__(
        self,
        publisher: PermissionPublisher | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._publisher = publisher
        self.timeout_seconds = timeout_seconds
        self._pending: dict[str, _PendingPermission] = {}

        self._total_requested = 0
        self._total_resolved = 0
        self._total_timeouts = 0

    async def request_approval(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        stream_id: str | None = None,
        tool_use_id: str | None = None,
    ) -> PermissionDecision:
        """
        Publish a permission request and wait for its decision.

        Never raises for timeouts or publisher failures; both resolve as deny.
        Cancellation of the waiting task removes the entry and propagates.
        """
        request = PermissionRequest(
            request_id=f"perm_{uuid.uuid4().hex}",
            tool_name=tool_name,
            tool_input=tool_input,
            stream_id=stream_id,
            tool_use_id=tool_use_id,
        )
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request.request_id] = _PendingPermission(request=request, future=fut)
        self._total_requested += 1

        if self._publisher is None:
            self._pending.pop(request.request_id, None)
            logger.warning(
                f"[PermissionGate] No publisher for {tool_name}; denying request_id={request.request_id}"
            )
            return PermissionDecision.deny(PUBLISH_FAILED_MESSAGE)

        try:
            await self._publisher(request)
        except asyncio.CancelledError:
            self._pending.pop(request.request_id, None)
            raise
        except Exception as e:
            logger.error(f"[PermissionGate] Failed to publish permission request: {e}", exc_info=True)
            self._pending.pop(request.request_id, None)
            return PermissionDecision.deny(PUBLISH_FAILED_MESSAGE)

        logger.info(
            f"[PermissionGate] Waiting for decision: tool={tool_name}, "
            f"request_id={request.request_id}, stream_id={stream_id}, "
            f"timeout={self.timeout_seconds}s"
        )

        try:
            decision = await asyncio.wait_for(fut, timeout=self.timeout_seconds)
        except TimeoutError:
            self._total_timeouts += 1
            logger.warning(
                f"[PermissionGate] Timeout waiting for request_id={request.request_id}; denying"
            )
            return PermissionDecision.deny(TIMEOUT_DENY_MESSAGE)
        finally:
            self._pending.pop(request.request_id, None)

        logger.info(
            f"[PermissionGate] Decision for request_id={request.request_id}: "
            f"{decision.behavior.value}"
        )
        return decision

    def resolve_permission(
        self, request_id: str, decision: PermissionDecision | dict[str, Any]
    ) -> bool:
        """
        Complete a pending request. Returns False if it is unknown or already done.

        Accepts a decision or a raw ``{behavior, message?}`` payload.
        """
        if isinstance(decision, dict):
            decision = PermissionDecision.from_payload(decision)

        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.warning(f"[PermissionGate] No pending permission request for {request_id}")
            return False

        if pending.future.done():
            logger.warning(f"[PermissionGate] Permission request already resolved: {request_id}")
            return False

        pending.future.set_result(decision)
        self._total_resolved += 1
        return True

    def abandon(self, stream_id: str, reason: str = ABANDONED_MESSAGE) -> int:
        """Deny and drop every pending request of one stream. Returns the count."""
        count = 0
        for request_id, pending in list(self._pending.items()):
            if pending.request.stream_id != stream_id:
                continue
            del self._pending[request_id]
            if not pending.future.done():
                pending.future.set_result(PermissionDecision.deny(reason))
                count += 1
        if count:
            logger.info(f"[PermissionGate] Abandoned {count} pending request(s) for {stream_id}")
        return count

    def sweep_expired(self, max_age_seconds: float | None = None) -> int:
        """Deny requests older than the timeout window. Returns the count."""
        max_age = timedelta(seconds=max_age_seconds or self.timeout_seconds)
        now = utc_now()
        expired = [
            rid for rid, p in self._pending.items() if now - p.request.created_at >= max_age
        ]
        for request_id in expired:
            pending = self._pending.pop(request_id)
            if not pending.future.done():
                pending.future.set_result(PermissionDecision.deny(TIMEOUT_DENY_MESSAGE))
                self._total_timeouts += 1
        if expired:
            logger.info(f"[PermissionGate] Swept {len(expired)} expired request(s)")
        return len(expired)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_request_ids(self) -> list[str]:
        return list(self._pending.keys())

    def get_stats(self) -> dict[str, Any]:
        return {
            "pending": len(self._pending),
            "total_requested": self._total_requested,
            "total_resolved": self._total_resolved,
            "total_timeouts": self._total_timeouts,
        }


def to_hook_response(decision: PermissionDecision) -> dict[str, Any]:
    """Translate a decision into the pre-tool-use hook's response shape."""
    if decision.behavior == PermissionBehavior.ALLOW:
        return {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "allow",
            }
        }
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": "deny",
            "permissionDecisionReason": decision.message or DEFAULT_DENY_MESSAGE,
        }
    }
