"""Credentials Port - provider credentials for one turn or session."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Credentials:
    api_key: str
    base_url: str
    model: str
    provider_type: str | None = None


class CredentialsPort(ABC):
    @abstractmethod
    def get_credentials(self) -> Credentials:
        """Return the configured credentials. Read once per turn/session."""
