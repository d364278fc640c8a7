"""Credentials service backed by application settings, with per-call overrides."""

import logging
from dataclasses import replace
from typing import Any

from codenova.configuration.config import Settings, get_settings
from codenova.domain.ports.services.credentials_port import Credentials, CredentialsPort

logger = logging.getLogger(__name__)


class SettingsCredentials(CredentialsPort):
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def get_credentials(self) -> Credentials:
        settings = self.settings
        return Credentials(
            api_key=settings.api_key or "",
            base_url=settings.base_url,
            model=settings.model,
            provider_type=settings.provider_type,
        )


def merge_overrides(base: Credentials, overrides: dict[str, Any] | None) -> Credentials:
    """
    Apply caller overrides field by field.

    Accepts both ``api_key`` and ``apiKey`` style keys; empty values are ignored.
    """
    if not overrides:
        return base

    aliases = {
        "api_key": ("api_key", "apiKey"),
        "base_url": ("base_url", "baseUrl"),
        "model": ("model",),
        "provider_type": ("provider_type", "providerType"),
    }
    changes: dict[str, Any] = {}
    for field_name, keys in aliases.items():
        for key in keys:
            value = overrides.get(key)
            if value:
                changes[field_name] = value.rstrip("/") if field_name == "base_url" else value
                break

    if changes:
        logger.debug(f"Applying credential overrides: {sorted(changes)}")
    return replace(base, **changes)
