"""Document store on a (shared) filesystem directory."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..core.errors import PathError, PersistenceError, FilesystemError
from ..core.log import get_logger
from ..utils.filesystem import atomic_write, exclusive_lock, read_bytes
from .document_store import StoredDocument, check_revision

logger = get_logger(__name__)

_DOC_SUFFIX = ".doc"
_LOCK_SUFFIX = ".lock"
_TOMBSTONE = b"deleted"


class FileDocumentStore:
    """DocumentStore keeping one file per key under ``root_dir``.

    Layout: key ``leases/prod`` maps to ``<root>/leases/prod.doc`` with a
    sibling ``prod.lock`` used for ``fcntl`` exclusive locking. A document
    file starts with a header line ``<revision>`` (or ``<revision> deleted``
    for a tombstone) followed by the raw document bytes. Files are replaced
    atomically so readers never see a torn write.
    """

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = Path(root_dir)

    def get_document(self, key: str) -> Optional[StoredDocument]:
        path = self._doc_path(key)
        with self._locked(path):
            revision, data = self._read(path)
        if data is None:
            return None
        return StoredDocument(data, revision)

    def put_document(
        self, key: str, data: bytes, expected_revision: Optional[int] = None
    ) -> int:
        path = self._doc_path(key)
        with self._locked(path):
            last_revision, current = self._read(path)
            check_revision(
                key,
                expected_revision,
                StoredDocument(current, last_revision) if current is not None else None,
            )
            revision = last_revision + 1
            self._write(path, f"{revision}\n".encode("ascii") + bytes(data))
        logger.debug("Stored %s at revision %s", key, revision)
        return revision

    def delete_document(self, key: str, expected_revision: Optional[int] = None) -> bool:
        path = self._doc_path(key)
        with self._locked(path):
            last_revision, current = self._read(path)
            check_revision(
                key,
                expected_revision,
                StoredDocument(current, last_revision) if current is not None else None,
            )
            if current is None:
                return False
            self._write(path, f"{last_revision} ".encode("ascii") + _TOMBSTONE + b"\n")
        logger.debug("Deleted %s at revision %s", key, last_revision)
        return True

    def list_keys(self, prefix: str = "") -> List[str]:
        if not self.root_dir.exists():
            return []
        keys = []
        for path in self.root_dir.rglob(f"*{_DOC_SUFFIX}"):
            key = path.relative_to(self.root_dir).as_posix()[: -len(_DOC_SUFFIX)]
            if not key.startswith(prefix):
                continue
            _, data = self._read(path)
            if data is not None:
                keys.append(key)
        return sorted(keys)

    def _doc_path(self, key: str) -> Path:
        parts = key.split("/")
        if not key or any(part in ("", ".", "..") for part in parts):
            raise PathError(f"Invalid document key: '{key}'")
        return self.root_dir.joinpath(*parts[:-1], parts[-1] + _DOC_SUFFIX)

    @contextmanager
    def _locked(self, path: Path) -> Iterator[None]:
        try:
            with exclusive_lock(path.with_suffix(_LOCK_SUFFIX)):
                yield
        except FilesystemError as e:
            raise PersistenceError(f"Cannot lock {path}: {e}") from e

    @staticmethod
    def _read(path: Path) -> Tuple[int, Optional[bytes]]:
        """Return (last revision, data) where data is None for absent or deleted."""
        try:
            raw = read_bytes(path, missing_ok=True)
        except FilesystemError as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e
        if raw is None:
            return 0, None

        header, sep, body = raw.partition(b"\n")
        fields = header.split()
        if not sep or not fields or not fields[0].isdigit():
            raise PersistenceError(f"Corrupt document header in {path}")
        revision = int(fields[0])
        if len(fields) > 1 and fields[1] == _TOMBSTONE:
            return revision, None
        return revision, body

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        try:
            atomic_write(path, payload)
        except FilesystemError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e
