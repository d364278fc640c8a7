"""Collaborator ports consumed by the orchestration core."""

from codenova.domain.ports.services.blob_store_port import BlobStorePort
from codenova.domain.ports.services.credentials_port import Credentials, CredentialsPort
from codenova.domain.ports.services.event_sink_port import EventSinkPort
from codenova.domain.ports.services.file_service_port import FileReadResult, FileServicePort, FileWriteResult

__all__ = [
    "BlobStorePort",
    "Credentials",
    "CredentialsPort",
    "EventSinkPort",
    "FileReadResult",
    "FileServicePort",
    "FileWriteResult",
]
