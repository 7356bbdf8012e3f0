"""Abstract scan engine interface.

All antivirus integrations implement :class:`ScanEngine`.  The default
implementation is :class:`~scanguard.engines.clamav.ClamAVEngine`.

An engine hands out one :class:`ScanSession` per scanned file.  The
coordinator feeds the session successive chunks; the session answers each
chunk with ``None`` ("need more data") or a terminal
:class:`~scanguard.core.verdict.Verdict`.  After the last chunk the
coordinator calls :meth:`ScanSession.finish`; returning ``None`` there means
the engine could not confirm that it consumed the whole input, and the file
is treated as unchecked.

Usage::

    from scanguard.engines.base import ScanEngine, ScanSession

    class MyEngine(ScanEngine):
        def open_session(self) -> ScanSession:
            ...

        def ping(self) -> bool:
            ...
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from scanguard.core.verdict import Verdict


class ScanEngineError(Exception):
    """Raised when the engine is unreachable or answers unexpectedly.

    Sessions normally translate engine faults into an ``"unchecked"``
    verdict; this exception is for failures outside a session, such as
    misconfiguration detected when the engine is built.
    """


class ScanSession(ABC):
    """Scan state for a single file.

    A session is used by exactly one thread and discarded after the scan.
    """

    @abstractmethod
    def feed(self, chunk: bytes) -> Verdict | None:
        """Consume *chunk*.

        Returns:
            ``None`` when the engine needs more data, or a terminal
            :class:`~scanguard.core.verdict.Verdict` that ends the scan early.
        """

    @abstractmethod
    def finish(self) -> Verdict | None:
        """Signal end of input and return the final verdict.

        Returns:
            The verdict, or ``None`` when the engine did not confirm that the
            complete input was scanned.
        """

    def close(self) -> None:
        """Release any resources held by the session.  Safe to call repeatedly."""


class ScanEngine(ABC):
    """Abstract interface for antivirus scan engines.

    Implementations must be safe for concurrent use from multiple threads:
    background sweeps open sessions from a ``ThreadPoolExecutor``.
    """

    @abstractmethod
    def open_session(self) -> ScanSession:
        """Return a fresh :class:`ScanSession` for one file."""

    @abstractmethod
    def ping(self) -> bool:
        """Return ``True`` if the engine is reachable and ready to scan.

        All exceptions must be caught internally; the method must never raise.
        """
