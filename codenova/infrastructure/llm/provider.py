"""
Provider resolution - picks the wire dialect, endpoint, auth headers and
request body for one chat request.

The dialect is selected once per request from provider configuration and
never re-derived from response shapes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from codenova.domain.ports.services.credentials_port import Credentials

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


class ProviderType(str, Enum):
    ANTHROPIC = "anthropic"
    THIRDPARTY = "thirdparty"


class Dialect(str, Enum):
    """Wire dialects understood by the stream decoder."""

    ANTHROPIC = "anthropic"
    OPENAI_COMPATIBLE = "openai_compatible"

    @property
    def endpoint_suffix(self) -> str:
        if self is Dialect.ANTHROPIC:
            return "/v1/messages"
        return "/v1/chat/completions"


# Short names accepted from the model picker
MODEL_ALIASES: dict[str, str] = {
    "opus": "claude-opus-4-5-20250514",
    "sonnet": "claude-sonnet-4-20250514",
    "haiku": "claude-haiku-3-5-20250520",
}


def resolve_model(model: str | None, default: str = DEFAULT_MODEL) -> str:
    if not model:
        return default
    return MODEL_ALIASES.get(model.lower(), model)


def infer_provider_type(model: str, base_url: str) -> ProviderType:
    """
    Infer provider type from model name and base URL.

    MiniMax gateways are third-party even when serving Claude model names.
    """
    if "minimax" in base_url.lower():
        return ProviderType.THIRDPARTY
    if model.lower().startswith("claude-"):
        return ProviderType.ANTHROPIC
    return ProviderType.THIRDPARTY


def is_anthropic_compatible(provider_type: ProviderType, base_url: str) -> bool:
    lowered = base_url.lower()
    return (
        provider_type == ProviderType.ANTHROPIC
        or "/anthropic" in lowered
        or "api.anthropic.com" in lowered
    )


@dataclass(frozen=True)
class ProviderRoute:
    """Everything needed to address one provider request."""

    provider_type: ProviderType
    dialect: Dialect
    endpoint: str
    model: str
    headers: dict[str, str]

    def build_body(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 4096,
        temperature: float | None = None,
        stream: bool = True,
        system_prompt: str | None = None,
    ) -> dict[str, Any]:
        if temperature is None:
            temperature = 0.7 if "minimax" in self.model.lower() else 1.0

        wire_messages = [{"role": m["role"], "content": m["content"]} for m in messages]
        body: dict[str, Any] = {
            "model": self.model,
            "messages": wire_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": stream,
        }
        if system_prompt:
            if self.dialect is Dialect.ANTHROPIC:
                body["system"] = system_prompt
            else:
                body["messages"] = [{"role": "system", "content": system_prompt}, *wire_messages]
        return body


def build_headers(api_key: str, dialect: Dialect) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if dialect is Dialect.ANTHROPIC:
        headers["x-api-key"] = api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
    else:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def resolve_route(credentials: Credentials) -> ProviderRoute:
    """Resolve the dialect, endpoint and headers for the given credentials."""
    base_url = credentials.base_url.rstrip("/")
    model = resolve_model(credentials.model)
    provider_type = (
        ProviderType(credentials.provider_type)
        if credentials.provider_type
        else infer_provider_type(model, base_url)
    )
    dialect = (
        Dialect.ANTHROPIC
        if is_anthropic_compatible(provider_type, base_url)
        else Dialect.OPENAI_COMPATIBLE
    )
    route = ProviderRoute(
        provider_type=provider_type,
        dialect=dialect,
        endpoint=f"{base_url}{dialect.endpoint_suffix}",
        model=model,
        headers=build_headers(credentials.api_key, dialect),
    )
    logger.debug(
        f"Resolved provider route: provider={provider_type.value}, dialect={dialect.value}, "
        f"endpoint={route.endpoint}, model={model}, api_key_present={bool(credentials.api_key)}"
    )
    return route
