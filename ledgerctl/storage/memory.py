"""In-process document store used by tests and single-process runs."""

import threading
from typing import Dict, List, Optional

from .document_store import StoredDocument, check_revision


class InMemoryDocumentStore:
    """Thread-safe dictionary-backed DocumentStore.

    Revisions are monotonic per key and survive deletion, so a key that is
    deleted and recreated never reuses a revision a stale writer may hold.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, StoredDocument] = {}
        self._last_revision: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get_document(self, key: str) -> Optional[StoredDocument]:
        with self._lock:
            return self._documents.get(key)

    def put_document(
        self, key: str, data: bytes, expected_revision: Optional[int] = None
    ) -> int:
        with self._lock:
            check_revision(key, expected_revision, self._documents.get(key))
            revision = self._last_revision.get(key, 0) + 1
            self._documents[key] = StoredDocument(bytes(data), revision)
            self._last_revision[key] = revision
            return revision

    def delete_document(self, key: str, expected_revision: Optional[int] = None) -> bool:
        with self._lock:
            current = self._documents.get(key)
            check_revision(key, expected_revision, current)
            if current is None:
                return False
            del self._documents[key]
            return True

    def list_keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._documents if k.startswith(prefix))

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
