"""ScanTarget — one stored object submitted for a malware scan.

A target is created per scan request and pins down the object's identity,
location and size validity at construction time.  Existence is checked only
once: an object that vanishes later surfaces as a stream fault when the
:class:`~scanguard.core.chunk_reader.ChunkReader` opens it.

Usage::

    from scanguard.core.scan_target import ScanTarget

    target = ScanTarget(storage, "alice/files/report.pdf")
    if target.is_valid():
        ...
"""

from __future__ import annotations

import logging

from scanguard.storage.base import (
    BackendError,
    StorageBackend,
    StorageError,
    TargetNotFoundError,
)

logger = logging.getLogger(__name__)


class ScanTarget:
    """A stored file that is a candidate for scanning.

    Args:
        storage: Backend holding the object.
        path: Backend-relative path of the object.
        file_id: Opaque object identifier.  Resolved from *storage* when
            omitted.

    Raises:
        BackendError: If *storage* is missing or fails while checking existence.
        TargetNotFoundError: If no object exists at *path*.
    """

    def __init__(
        self,
        storage: StorageBackend | None,
        path: str,
        file_id: str | None = None,
    ) -> None:
        if not isinstance(storage, StorageBackend):
            logger.error(
                "Can't init storage backend: file_id=%s path=%s", file_id, path
            )
            raise BackendError(f"No usable storage backend for {path!r}")

        try:
            exists = storage.exists(path)
        except StorageError:
            raise
        except Exception as exc:
            logger.error(
                "Storage backend failed probing file: file_id=%s path=%s error=%r",
                file_id,
                path,
                exc,
            )
            raise BackendError(f"Storage backend failed probing {path!r}: {exc}") from exc

        if not exists:
            logger.error("File does not exist: file_id=%s path=%s", file_id, path)
            raise TargetNotFoundError(f"File does not exist: {path!r}")

        self._storage = storage
        self._path = path
        self._id = file_id if file_id is not None else storage.get_file_id(path)
        self._size_valid = storage.filesize(path) > 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def path(self) -> str:
        return self._path

    @property
    def size_valid(self) -> bool:
        return self._size_valid

    @property
    def is_directory(self) -> bool:
        return self._storage.is_dir(self._path)

    def is_valid(self) -> bool:
        """Return ``True`` if the target should be scanned.

        Directories and zero-length files are never scanned.
        """
        return not self.is_directory and self._size_valid

    def log_fields(self) -> tuple[str, str | None, str]:
        """Return ``(file_id, owner, path)`` for log messages.

        The owner is looked up from the backend on every call; ``None`` is
        returned when the object can no longer be resolved.
        """
        try:
            owner: str | None = self._storage.get_owner(self._path)
        except (StorageError, OSError):
            owner = None
        return self._id, owner, self._path

    def __repr__(self) -> str:
        return f"ScanTarget(id={self._id!r}, path={self._path!r})"
