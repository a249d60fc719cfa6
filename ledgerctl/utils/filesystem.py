"""Filesystem primitives for stores kept on a shared directory."""

import fcntl
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..core.errors import FilesystemError, PathError, AtomicWriteError
from ..core.log import get_logger

logger = get_logger(__name__)


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` in one rename.

    The payload is fsynced before the rename, so readers see either the old
    file or the complete new one.
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb", dir=path.parent, delete=False, prefix=f".{path.name}.tmp"
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise AtomicWriteError(f"Failed to atomically write to {path}: {e}") from e
    logger.debug("Atomically wrote %s bytes to %s", len(data), path)


def read_bytes(path: Path, missing_ok: bool = False) -> Optional[bytes]:
    """Read a whole file; a missing file is None when ``missing_ok`` else PathError."""
    try:
        return Path(path).read_bytes()
    except FileNotFoundError as e:
        if missing_ok:
            return None
        raise PathError(f"File not found: {path}") from e
    except OSError as e:
        raise FilesystemError(f"Error reading {path}: {e}") from e


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Error creating directory {path}: {e}") from e
    return path


@contextmanager
def exclusive_lock(lock_path: Path) -> Iterator[None]:
    """Hold an ``fcntl`` exclusive lock on ``lock_path`` (created if needed).

    Advisory only: every writer of the guarded files must take the same lock.
    """
    lock_path = Path(lock_path)
    ensure_dir(lock_path.parent)
    try:
        lock_file = open(lock_path, "a+b")
    except OSError as e:
        raise FilesystemError(f"Cannot open lock file {lock_path}: {e}") from e
    with lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
