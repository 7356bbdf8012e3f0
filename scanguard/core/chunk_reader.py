"""ChunkReader — sequential, chunked reads over a scan target's byte stream.

The reader moves through three states::

    UNOPENED --first read--> OPEN --end of data--> EXHAUSTED

The stream is opened lazily on the first :meth:`ChunkReader.next_chunk`
call and closed exactly once, either when the stream reports end of data,
when a read fails, or when :meth:`ChunkReader.close` is called early.  Once
``EXHAUSTED`` the reader never reopens the stream.

Usage::

    with ChunkReader(target, storage, chunk_size=1024) as reader:
        while (chunk := reader.next_chunk()) is not None:
            session.feed(chunk)
"""

from __future__ import annotations

import enum
import logging
from typing import BinaryIO

from scanguard.core.scan_target import ScanTarget
from scanguard.storage.base import StorageBackend, StreamOpenError, StreamReadError

logger = logging.getLogger(__name__)


class ReaderState(str, enum.Enum):
    """Lifecycle state of a :class:`ChunkReader`."""

    UNOPENED = "unopened"
    OPEN = "open"
    EXHAUSTED = "exhausted"


class ChunkReader:
    """Read a target's bytes in fixed-size chunks, strictly in order.

    Not safe for concurrent use: one reader serves one scan.

    Args:
        target: The file being scanned.
        storage: Backend used to open the target's stream.
        chunk_size: Maximum number of bytes returned per chunk.
    """

    def __init__(
        self,
        target: ScanTarget,
        storage: StorageBackend,
        chunk_size: int,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._target = target
        self._storage = storage
        self._chunk_size = chunk_size
        self._handle: BinaryIO | None = None
        self._state = ReaderState.UNOPENED
        self._offset = 0

    def __enter__(self) -> "ChunkReader":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def offset(self) -> int:
        """Number of bytes returned so far."""
        return self._offset

    def next_chunk(self) -> bytes | None:
        """Return the next chunk of at most ``chunk_size`` bytes.

        Returns:
            The next chunk, or ``None`` once the stream is exhausted or the
            target is not valid for scanning.

        Raises:
            StreamOpenError: If the backend refuses to open the stream.
            StreamReadError: If reading from the open stream fails.
        """
        if not self._target.is_valid():
            return None
        if self._state is ReaderState.EXHAUSTED:
            return None
        handle = self._open() if self._state is ReaderState.UNOPENED else self._handle
        if handle is None:
            return None
        try:
            data = handle.read(self._chunk_size)
        except (OSError, ValueError) as exc:
            file_id, owner, path = self._target.log_fields()
            logger.error(
                "Read failed: file_id=%s owner=%s path=%s error=%r",
                file_id,
                owner,
                path,
                exc,
            )
            self._release()
            raise StreamReadError(f"Read failed for {path!r}: {exc}") from exc

        if not data:
            file_id, owner, path = self._target.log_fields()
            logger.debug("Scan is done: file_id=%s owner=%s path=%s", file_id, owner, path)
            self._release()
            return None

        self._offset += len(data)
        return data

    def close(self) -> None:
        """Release the stream if it is still open.  Safe to call repeatedly."""
        if self._state is ReaderState.OPEN:
            self._release()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _open(self) -> BinaryIO:
        try:
            handle = self._storage.open(self._target.path, "rb")
        except StreamOpenError:
            file_id, owner, path = self._target.log_fields()
            logger.error(
                "Can not open for reading: file_id=%s owner=%s path=%s",
                file_id,
                owner,
                path,
            )
            raise

        file_id, owner, path = self._target.log_fields()
        logger.debug("Scan started: file_id=%s owner=%s path=%s", file_id, owner, path)
        self._handle = handle
        self._state = ReaderState.OPEN
        return handle

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        self._state = ReaderState.EXHAUSTED
        if handle is not None:
            handle.close()
