"""Shared document stores for lease records and registry documents."""

from pathlib import Path

from ..core.enums import StoreBackend
from ..core.types import StoreConfig
from .document_store import (
    NO_DOCUMENT,
    DocumentStore,
    StoredDocument,
    lease_key,
    registry_key,
)
from .file import FileDocumentStore
from .memory import InMemoryDocumentStore


def create_store(config: StoreConfig) -> DocumentStore:
    """Build the store selected by configuration."""
    if config.backend == StoreBackend.MEMORY:
        return InMemoryDocumentStore()
    return FileDocumentStore(Path(config.root_dir))


__all__ = [
    "NO_DOCUMENT",
    "DocumentStore",
    "StoredDocument",
    "InMemoryDocumentStore",
    "FileDocumentStore",
    "create_store",
    "lease_key",
    "registry_key",
]
