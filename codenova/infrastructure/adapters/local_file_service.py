"""Local filesystem implementation of the file service port."""

import asyncio
import logging
from pathlib import Path

from codenova.domain.ports.services.file_service_port import (
    FileReadResult,
    FileServicePort,
    FileWriteResult,
)

logger = logging.getLogger(__name__)


class LocalFileService(FileServicePort):
    """
    Reads and writes UTF-8 files, resolving relative paths against ``root``.

    Blocking I/O runs in a worker thread.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root).expanduser() if root else None

    def _resolve(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        if self._root is not None and not candidate.is_absolute():
            candidate = self._root / candidate
        return candidate

    async def read_text(self, path: str) -> FileReadResult:
        target = self._resolve(path)
        try:
            content = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Failed to read {target}: {e}")
            return FileReadResult(success=False, error=str(e))
        return FileReadResult(success=True, content=content)

    async def write_file(self, path: str, content: str) -> FileWriteResult:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.warning(f"Failed to write {target}: {e}")
            return FileWriteResult(success=False, error=str(e))
        return FileWriteResult(success=True)
