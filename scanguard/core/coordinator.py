"""ScanCoordinator — drive one target through reader, engine and policy.

For each scan the coordinator:

1. Builds a :class:`~scanguard.core.scan_target.ScanTarget`.  Directories and
   empty files are reported as ``"skipped"`` without contacting the engine.
2. Opens an engine session and feeds it chunks from a
   :class:`~scanguard.core.chunk_reader.ChunkReader` until the session
   returns a verdict or the stream is exhausted.
3. On exhaustion asks the session to finish.  Unless the engine explicitly
   answers ``clean`` (or another verdict) the scan is treated as
   ``unchecked``.
4. Hands the verdict to the
   :class:`~scanguard.core.verdict_processor.VerdictProcessor`.

Storage faults (missing target, unusable backend, refused stream) propagate
to the caller unchanged; converting them into a verdict is the caller's
decision.

Usage::

    coordinator = ScanCoordinator(
        storage=storage,
        engine=ClamAVEngine(host="clamav"),
        activity=activity_service,
        notifier=mail_notifier,
        records=record_store,
        settings=get_settings(),
        trash_hook=trashbin,
    )
    report = coordinator.scan("alice/files/upload.exe", background=False)
    if report.outcome.aborted:
        return JSONResponse(report.outcome.payload, status_code=403)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from scanguard.config import Settings
from scanguard.core.chunk_reader import ChunkReader
from scanguard.core.scan_target import ScanTarget
from scanguard.core.verdict import Verdict
from scanguard.core.verdict_processor import (
    CONTINUE,
    ActivitySink,
    Notifier,
    ProcessOutcome,
    ScanRecordRepository,
    TrashHook,
    VerdictProcessor,
)
from scanguard.engines.base import ScanEngine
from scanguard.storage.base import StorageBackend

logger = logging.getLogger(__name__)

ReportStatus = Literal["infected", "unchecked", "clean", "skipped"]

_INCOMPLETE_SCAN_DETAILS = "Scan ended before the engine confirmed the end of input"


@dataclass(frozen=True)
class ScanReport:
    """Summary of a single coordinated scan.

    Attributes:
        path: Backend-relative path of the target.
        file_id: Identifier of the target.
        status: Verdict status, or ``"skipped"`` for targets that are not
            valid for scanning.
        details: Verdict details (empty for clean and skipped).
        bytes_scanned: Number of bytes fed to the engine.
        outcome: What the verdict processor asks the caller to do.
    """

    path: str
    file_id: str
    status: ReportStatus
    details: str
    bytes_scanned: int
    outcome: ProcessOutcome

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "file_id": self.file_id,
            "status": self.status,
            "details": self.details,
            "bytes_scanned": self.bytes_scanned,
            "action": self.outcome.action,
        }


class ScanCoordinator:
    """Orchestrates chunked reading, engine scanning and verdict processing.

    The coordinator holds no per-scan state: concurrent :meth:`scan` calls
    for different targets may share one instance.

    Args:
        storage: Backend holding the targets.
        engine: Scan engine providing a session per target.
        activity: Sink for "virus detected" activity events.
        notifier: Mail notifier for infected uploads.
        records: Scan record store.
        settings: Supplies ``av_chunk_size`` and ``av_infected_action``.
        trash_hook: Trash-bin hook, or ``None`` when no trash bin is active.
    """

    def __init__(
        self,
        *,
        storage: StorageBackend,
        engine: ScanEngine,
        activity: ActivitySink,
        notifier: Notifier,
        records: ScanRecordRepository,
        settings: Settings,
        trash_hook: TrashHook | None = None,
    ) -> None:
        self._storage = storage
        self._engine = engine
        self._chunk_size = settings.av_chunk_size
        self._processor = VerdictProcessor(
            storage=storage,
            activity=activity,
            notifier=notifier,
            records=records,
            infected_action=settings.av_infected_action,
            trash_hook=trash_hook,
        )

    def scan(
        self,
        path: str,
        *,
        background: bool,
        file_id: str | None = None,
    ) -> ScanReport:
        """Scan the object at *path* and apply the verdict policy.

        Args:
            path: Backend-relative path of the object.
            background: ``True`` for scheduled sweeps, ``False`` for
                interactive uploads.
            file_id: Known object identifier; resolved from the backend when
                omitted.

        Returns:
            A :class:`ScanReport`.

        Raises:
            BackendError: If the storage backend is unusable.
            TargetNotFoundError: If the object does not exist.
            StreamOpenError: If the object's stream cannot be opened or read.
        """
        target = ScanTarget(self._storage, path, file_id)

        owner = target.log_fields()[1]
        if not target.is_valid():
            logger.debug(
                "Skipping scan of directory or empty file: file_id=%s owner=%s path=%s",
                target.id,
                owner,
                target.path,
            )
            return ScanReport(
                path=target.path,
                file_id=target.id,
                status="skipped",
                details="",
                bytes_scanned=0,
                outcome=CONTINUE,
            )

        verdict, bytes_scanned = self._run_engine(target)
        logger.info(
            "Scan finished: file_id=%s owner=%s path=%s status=%s bytes=%d background=%s",
            target.id,
            owner,
            target.path,
            verdict.status,
            bytes_scanned,
            background,
        )

        outcome = self._processor.process(target, verdict, background=background)
        return ScanReport(
            path=target.path,
            file_id=target.id,
            status=verdict.status,
            details=verdict.details,
            bytes_scanned=bytes_scanned,
            outcome=outcome,
        )

    def _run_engine(self, target: ScanTarget) -> tuple[Verdict, int]:
        """Feed *target* through a fresh engine session and return its verdict."""
        session = self._engine.open_session()
        verdict: Verdict | None = None
        try:
            with ChunkReader(target, self._storage, self._chunk_size) as reader:
                while verdict is None:
                    chunk = reader.next_chunk()
                    if chunk is None:
                        verdict = session.finish()
                        if verdict is None:
                            verdict = Verdict.unchecked(_INCOMPLETE_SCAN_DETAILS)
                        break
                    verdict = session.feed(chunk)
                bytes_scanned = reader.offset
        finally:
            session.close()
        return verdict, bytes_scanned
