"""Shared document store interface.

Every lease record and registry document lives in a store behind this small
interface. Writes can be fenced on the revision that was read, which is what
turns a plain key/value store into a compare-and-swap primitive.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from ..core.errors import VersionConflictError

# Expected revision meaning "the key must not exist yet" (create-only write)
NO_DOCUMENT = 0


@dataclass(frozen=True)
class StoredDocument:
    """Document bytes together with the revision they were stored under."""

    data: bytes
    revision: int


@runtime_checkable
class DocumentStore(Protocol):
    """Fenced key/value document store shared by all CLI invocations."""

    def get_document(self, key: str) -> Optional[StoredDocument]:
        """Return the stored document, or None when the key is absent."""

    def put_document(
        self, key: str, data: bytes, expected_revision: Optional[int] = None
    ) -> int:
        """Store data and return its new revision.

        ``expected_revision`` None writes unconditionally, ``NO_DOCUMENT``
        requires the key to be absent, any other value requires the stored
        revision to match. A mismatch raises VersionConflictError.
        """

    def delete_document(self, key: str, expected_revision: Optional[int] = None) -> bool:
        """Delete the key, returning False when it was already absent."""

    def list_keys(self, prefix: str = "") -> List[str]:
        """List present keys starting with prefix, sorted."""


def check_revision(
    key: str, expected_revision: Optional[int], current: Optional[StoredDocument]
) -> None:
    """Raise VersionConflictError when a fenced write does not match the store."""
    if expected_revision is None:
        return
    actual = current.revision if current is not None else NO_DOCUMENT
    if actual != expected_revision:
        raise VersionConflictError(
            f"Revision mismatch for '{key}': expected {expected_revision}, found {actual}",
            key=key,
            expected_revision=expected_revision,
            actual_revision=actual,
        )


def lease_key(scope: str) -> str:
    return f"leases/{scope}"


def registry_key(scope: str) -> str:
    return f"registry/{scope}"
