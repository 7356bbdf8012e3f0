"""Local filesystem storage backend.

Serves scan targets from a directory tree rooted at ``settings.storage_root``.
Backend-relative paths are resolved under the root and rejected when they
escape it.  File identifiers combine the device, inode and change time of
the stored file, and owners are resolved from the file's uid.
"""
from __future__ import annotations

import logging
import os
import pwd
import shutil
import stat
from typing import BinaryIO, Iterator

from scanguard.storage.base import (
    BackendError,
    DeleteError,
    InvalidPathError,
    StorageBackend,
    StreamOpenError,
    TargetNotFoundError,
)
from scanguard.storage.trashbin import TrashBin

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
    """Storage backend over a local directory.

    Args:
        root: Root directory holding the stored files.
        trashbin: Optional :class:`~scanguard.storage.trashbin.TrashBin`.
            When set, deletes move files into the trash unless the bin is
            bypassed for the calling thread.
    """

    def __init__(self, root: str, trashbin: TrashBin | None = None) -> None:
        self._root = os.path.realpath(root)
        self._trashbin = trashbin

    # ------------------------------------------------------------------
    # StorageBackend interface
    # ------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return os.path.exists(self._full_path(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self._full_path(path))

    def filesize(self, path: str) -> int:
        st = self._stat(path)
        if stat.S_ISDIR(st.st_mode):
            return 0
        return st.st_size

    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        full_path = self._full_path(path)
        try:
            return open(full_path, mode)  # noqa: SIM115
        except OSError as exc:
            raise StreamOpenError(f"Cannot open {path!r} for reading: {exc}") from exc

    def delete(self, path: str) -> None:
        full_path = self._full_path(path)
        try:
            if self._trashbin is not None and not self._trashbin.is_bypassed():
                self._trashbin.move_to_trash(full_path)
            elif os.path.isdir(full_path):
                shutil.rmtree(full_path)
            else:
                os.remove(full_path)
        except OSError as exc:
            raise DeleteError(f"Cannot delete {path!r}: {exc}") from exc
        logger.debug("LocalStorageBackend: deleted path=%s", path)

    def get_owner(self, path: str) -> str:
        uid = self._stat(path).st_uid
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return str(uid)

    def get_file_id(self, path: str) -> str:
        # Inode numbers are reused as soon as a file is freed; the change time
        # tells a new file on a recycled inode apart from the old one.
        st = self._stat(path)
        return f"{st.st_dev}:{st.st_ino}:{st.st_ctime_ns}"

    def iter_files(self) -> Iterator[str]:
        trash_dir = self._trashbin.trash_dir if self._trashbin is not None else None
        for dirpath, dirnames, filenames in os.walk(self._root):
            if trash_dir is not None:
                dirnames[:] = [
                    d for d in dirnames
                    if os.path.join(dirpath, d) != trash_dir
                ]
            for name in sorted(filenames):
                full_path = os.path.join(dirpath, name)
                yield os.path.relpath(full_path, self._root).replace(os.sep, "/")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _stat(self, path: str) -> os.stat_result:
        try:
            return os.stat(self._full_path(path))
        except FileNotFoundError as exc:
            raise TargetNotFoundError(f"File does not exist: {path!r}") from exc
        except OSError as exc:
            raise BackendError(f"Cannot stat {path!r}: {exc}") from exc

    def _full_path(self, path: str) -> str:
        """Return the absolute path for *path*, refusing anything outside the root."""
        full_path = os.path.realpath(os.path.join(self._root, path.lstrip("/")))
        if full_path != self._root and not full_path.startswith(self._root + os.sep):
            raise InvalidPathError(f"Path {path!r} escapes the storage root")
        return full_path
