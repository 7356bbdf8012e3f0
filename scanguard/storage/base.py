"""Abstract storage backend interface and storage fault types.

The scan core never touches the filesystem directly: every existence check,
size lookup, stream open, and delete goes through a :class:`StorageBackend`.
The default implementation is
:class:`~scanguard.storage.local.LocalStorageBackend`.

Fault taxonomy
--------------
:class:`StorageError`
    Base class for every storage fault.
:class:`BackendError`
    The backend itself is missing or unusable.
:class:`TargetNotFoundError`
    The requested object does not exist.
:class:`InvalidPathError`
    The requested path resolves outside the backend root.
:class:`StreamOpenError`
    The backend refused to open a read stream (vanished file, permission
    denied, I/O error).  Fatal for the current scan; never retried.
:class:`StreamReadError`
    A read on an already open stream failed, e.g. because the stream was
    closed underneath the reader to cancel a scan.
:class:`DeleteError`
    Removing an object failed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator


class StorageError(Exception):
    """Base class for storage backend faults."""


class BackendError(StorageError):
    """Raised when the storage backend is missing or cannot be used."""


class TargetNotFoundError(StorageError):
    """Raised when the requested object does not exist in the backend."""


class InvalidPathError(StorageError):
    """Raised when a path resolves outside the storage root."""


class StreamOpenError(StorageError):
    """Raised when the backend refuses to open a read stream for an object."""


class StreamReadError(StreamOpenError):
    """Raised when reading from an open stream fails."""


class DeleteError(StorageError):
    """Raised when the backend fails to remove an object."""


class StorageBackend(ABC):
    """Abstract interface over the file store holding scan targets.

    All paths are backend-relative strings.  Implementations must be safe
    for concurrent use from multiple threads: background sweeps scan
    several targets in parallel against one backend instance.
    """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return ``True`` if an object exists at *path*."""

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Return ``True`` if *path* is a directory."""

    @abstractmethod
    def filesize(self, path: str) -> int:
        """Return the byte length of the object at *path*."""

    @abstractmethod
    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        """Open a stream on *path*.

        Raises:
            StreamOpenError: If the object cannot be opened.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the object at *path*.

        Raises:
            DeleteError: If removal fails.
        """

    @abstractmethod
    def get_owner(self, path: str) -> str:
        """Return the identity owning the object at *path*."""

    @abstractmethod
    def get_file_id(self, path: str) -> str:
        """Return the opaque, stable identifier of the object at *path*."""

    @abstractmethod
    def iter_files(self) -> Iterator[str]:
        """Yield the backend-relative path of every regular file."""
