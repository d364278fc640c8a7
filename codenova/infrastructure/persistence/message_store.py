"""
Message store - conversations persisted as JSON blobs in a key-value store.

No durability guarantees: the directory store writes whole files and the
in-memory store lives only as long as the process.
"""

import asyncio
import json
import logging
import re
from pathlib import Path

from codenova.domain.model.chat.message import Message
from codenova.domain.ports.services.blob_store_port import BlobStorePort

logger = logging.getLogger(__name__)

KEY_PREFIX = "codenova_messages_"


class InMemoryBlobStore(BlobStorePort):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class DirectoryBlobStore(BlobStorePort):
    """One ``<key>.json`` file per key under ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    async def get(self, key: str) -> str | None:
        path = self._path(key)

        def _read() -> str | None:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

        return await asyncio.to_thread(_read)

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)


class MessageStore:
    """Loads and saves the message list of one conversation at a time."""

    def __init__(self, blob_store: BlobStorePort) -> None:
        self._blob_store = blob_store

    @staticmethod
    def key_for(conversation_id: str) -> str:
        return f"{KEY_PREFIX}{conversation_id}"

    async def load(self, conversation_id: str) -> list[Message]:
        raw = await self._blob_store.get(self.key_for(conversation_id))
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable message blob for {conversation_id}")
            return []
        if not isinstance(items, list):
            return []
        return [Message.from_dict(item) for item in items if isinstance(item, dict)]

    async def save(self, conversation_id: str, messages: list[Message]) -> None:
        payload = json.dumps([m.to_dict() for m in messages], ensure_ascii=False)
        await self._blob_store.set(self.key_for(conversation_id), payload)

    async def clear(self, conversation_id: str) -> None:
        await self._blob_store.delete(self.key_for(conversation_id))
