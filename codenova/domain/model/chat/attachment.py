"""File attachments carried by a chat turn."""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath


class AttachmentKind(str, Enum):
    FILE = "file"
    IMAGE = "image"


@dataclass(frozen=True)
class Attachment:
    path: str
    kind: AttachmentKind = AttachmentKind.FILE
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or PurePath(self.path).name
