"""Storage backends for ScanGuard.

Public re-exports for the storage package::

    from scanguard.storage import LocalStorageBackend, StorageBackend, TrashBin
"""

from scanguard.storage.base import (
    BackendError,
    DeleteError,
    InvalidPathError,
    StorageBackend,
    StorageError,
    StreamOpenError,
    StreamReadError,
    TargetNotFoundError,
)
from scanguard.storage.local import LocalStorageBackend
from scanguard.storage.trashbin import TrashBin

__all__ = [
    "BackendError",
    "DeleteError",
    "InvalidPathError",
    "LocalStorageBackend",
    "StorageBackend",
    "StorageError",
    "StreamOpenError",
    "StreamReadError",
    "TargetNotFoundError",
    "TrashBin",
]
