"""Blob Store Port - simple key-value storage for serialized blobs."""

from abc import ABC, abstractmethod


class BlobStorePort(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored blob or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a blob, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a blob; missing keys are ignored."""
