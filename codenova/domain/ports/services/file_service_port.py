"""File Service Port - read and write files on behalf of the core."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class FileReadResult:
    success: bool
    content: str | None = None
    error: str | None = None


@dataclass
class FileWriteResult:
    success: bool
    error: str | None = None


class FileServicePort(ABC):
    """
    Abstract interface for file access.

    Implementations never raise for ordinary I/O failures; they report
    them through the ``success``/``error`` fields instead.
    """

    @abstractmethod
    async def read_text(self, path: str) -> FileReadResult:
        """Read a file as UTF-8 text."""

    @abstractmethod
    async def write_file(self, path: str, content: str) -> FileWriteResult:
        """Write UTF-8 text to a file, replacing any existing content."""
