"""Error hierarchy shared by the chat and agent controllers."""

import json
from typing import Any

from codenova.domain.shared_kernel import DomainException


class CodeNovaError(DomainException):
    """Base class for orchestration errors."""

    pass


class ConfigurationError(CodeNovaError):
    """Raised when credentials or endpoints are missing or invalid."""

    pass


class TransportError(CodeNovaError):
    """
    Raised for non-2xx provider responses and connection failures.

    ``status_code`` is None when no HTTP response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type

    @classmethod
    def from_response(cls, status_code: int, body: bytes | str) -> "TransportError":
        """Build an error from a failed response, preferring the provider's own message."""
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        data: Any = None
        try:
            data = json.loads(text) if text else None
        except ValueError:
            data = None

        message = None
        error_type = None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                message = error.get("message")
                error_type = error.get("type")
            elif isinstance(error, str):
                message = error
            message = message or data.get("message")

        if not message:
            snippet = text[:500] if text else ""
            message = f"API request failed: {status_code}" + (f" - {snippet}" if snippet else "")
        return cls(message, status_code=status_code, error_type=error_type)

    def user_message(self) -> str:
        suffix = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{self.message}{suffix}"

