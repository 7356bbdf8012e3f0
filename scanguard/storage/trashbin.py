"""TrashBin — recycle bin for the local storage backend.

When enabled, :meth:`LocalStorageBackend.delete
<scanguard.storage.local.LocalStorageBackend.delete>` moves files into the
trash directory instead of unlinking them.  Infected files must never be
recoverable from the trash, so the verdict processor brackets its delete
with :meth:`pre_delete` / :meth:`post_delete`, which bypass the trash for
the calling thread only.
"""
from __future__ import annotations

import logging
import os
import shutil
import threading
import time
import uuid

logger = logging.getLogger(__name__)


class TrashBin:
    """Move deleted files into *trash_dir* unless bypassed.

    The bypass flag is thread-local: a purge running in one worker thread
    does not affect ordinary deletes running concurrently in another.

    Args:
        trash_dir: Absolute path of the trash directory.  Created on first
            use.
    """

    def __init__(self, trash_dir: str) -> None:
        self._trash_dir = trash_dir
        self._state = threading.local()

    @property
    def trash_dir(self) -> str:
        return self._trash_dir

    # ------------------------------------------------------------------
    # Trash hook
    # ------------------------------------------------------------------

    def pre_delete(self) -> None:
        """Bypass the trash for deletes issued by the current thread."""
        self._state.bypass = True

    def post_delete(self) -> None:
        """Restore normal trash behaviour for the current thread."""
        self._state.bypass = False

    def is_bypassed(self) -> bool:
        return getattr(self._state, "bypass", False)

    # ------------------------------------------------------------------
    # Trash operations
    # ------------------------------------------------------------------

    def move_to_trash(self, full_path: str) -> str:
        """Move *full_path* into the trash and return its new location.

        The trashed name carries a ``.d<unix-ts>.<token>`` suffix.  The random
        token keeps files with the same basename apart when they are deleted
        within the same second.
        """
        os.makedirs(self._trash_dir, exist_ok=True)
        name = f"{os.path.basename(full_path)}.d{int(time.time())}.{uuid.uuid4().hex[:8]}"
        destination = os.path.join(self._trash_dir, name)
        shutil.move(full_path, destination)
        logger.debug("TrashBin: moved %s to %s", full_path, destination)
        return destination
