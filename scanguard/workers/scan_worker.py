"""Celery scan worker — single-file scans and the background sweep.

This module wraps :class:`~scanguard.core.coordinator.ScanCoordinator` in two
Celery tasks:

* :func:`scan_file_task` — scan one stored file, by default in background
  context.  Returns the scan report as a dict.

* :func:`background_scan_task` — the scheduled sweep.  Lists the stored
  files, skips those with a clean scan newer than
  ``settings.background_rescan_seconds``, and scans up to
  ``settings.background_batch_size`` of the rest concurrently in a
  :class:`~concurrent.futures.ThreadPoolExecutor`.

**Fault policy**

Background scans must never stop because of one file.  Storage faults for a
target (vanished file, refused stream) are logged and reported as
``"error"`` for that file only; the sweep carries on.  Stream faults are not
retried.

**Usage**::

    from scanguard.workers.scan_worker import scan_file_task

    result = scan_file_task.delay(path="alice/files/report.pdf")
    print(result.get())  # {"path": "...", "status": "clean", ...}

**Starting a worker**::

    celery -A scanguard.celery_app worker --loglevel=info -Q scanguard
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

from scanguard.celery_app import celery_app
from scanguard.container import ScanServices, get_services
from scanguard.core.coordinator import ScanCoordinator
from scanguard.core.verdict_processor import PersistenceError
from scanguard.storage.base import StorageError

logger = logging.getLogger(__name__)

_STATUSES: tuple[str, ...] = ("infected", "unchecked", "clean", "skipped", "error")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _error_result(path: str, exc: Exception) -> dict[str, Any]:
    return {
        "path": path,
        "file_id": None,
        "status": "error",
        "details": f"{type(exc).__name__}: {exc}",
        "bytes_scanned": 0,
        "action": "continue",
    }


def _scan_one(
    coordinator: ScanCoordinator,
    path: str,
    *,
    background: bool,
    file_id: str | None = None,
) -> dict[str, Any]:
    """Scan *path*, converting storage faults into an ``"error"`` result."""
    try:
        report = coordinator.scan(path, background=background, file_id=file_id)
    except StorageError as exc:
        logger.error("Scan aborted for path=%s: %r", path, exc)
        return _error_result(path, exc)
    return report.to_dict()


def _select_candidates(services: ScanServices) -> list[str]:
    """Return up to ``background_batch_size`` paths due for a re-scan."""
    settings = services.settings
    cutoff = datetime.now(tz=timezone.utc) - timedelta(seconds=settings.background_rescan_seconds)
    try:
        recent = services.records.checked_since(cutoff)
    except PersistenceError as exc:
        logger.error("background_scan_task: cannot read scan records, rescanning all: %s", exc)
        recent = set()

    candidates: list[str] = []
    for path in services.storage.iter_files():
        try:
            file_id = services.storage.get_file_id(path)
        except (StorageError, OSError) as exc:
            logger.warning("background_scan_task: skipping path=%s: %r", path, exc)
            continue
        if file_id in recent:
            continue
        candidates.append(path)
        if len(candidates) >= settings.background_batch_size:
            break
    return candidates


# ---------------------------------------------------------------------------
# Celery tasks
# ---------------------------------------------------------------------------


@celery_app.task(
    name="scanguard.workers.scan_worker.scan_file_task",
    acks_late=True,
    reject_on_worker_lost=True,
)
def scan_file_task(
    *,
    path: str,
    background: bool = True,
    file_id: str | None = None,
) -> dict[str, Any]:
    """Celery task: scan a single stored file.

    Args:
        path: Backend-relative path of the file.
        background: Execution context; defaults to background because a
            queued task has no interactive requester to abort.
        file_id: Optional known identifier of the file.

    Returns:
        The :meth:`~scanguard.core.coordinator.ScanReport.to_dict` payload,
        or a result with ``status="error"`` when a storage fault prevented
        the scan.
    """
    coordinator = get_services().coordinator()
    result = _scan_one(coordinator, path, background=background, file_id=file_id)
    logger.info(
        "scan_file_task: complete path=%s status=%s",
        path,
        result["status"],
    )
    return result


@celery_app.task(
    name="scanguard.workers.scan_worker.background_scan_task",
    acks_late=True,
    reject_on_worker_lost=True,
)
def background_scan_task() -> dict[str, Any]:
    """Celery task: re-scan stored files that are due, in background context.

    Returns:
        A dict with:

        * ``total``   — number of files scanned.
        * ``results`` — per-file result dicts, in candidate order.
        * ``summary`` — counts per status (``infected``, ``unchecked``,
          ``clean``, ``skipped``, ``error``).
    """
    services = get_services()
    candidates = _select_candidates(services)
    summary: dict[str, int] = dict.fromkeys(_STATUSES, 0)

    if not candidates:
        logger.info("background_scan_task: nothing to scan")
        return {"total": 0, "results": [], "summary": summary}

    coordinator = services.coordinator()
    with ThreadPoolExecutor(max_workers=services.settings.scan_max_workers) as executor:
        results = list(
            executor.map(
                lambda path: _scan_one(coordinator, path, background=True),
                candidates,
            )
        )

    for r in results:
        summary[r["status"]] = summary.get(r["status"], 0) + 1

    logger.info(
        "background_scan_task: complete total=%d infected=%d unchecked=%d clean=%d "
        "skipped=%d error=%d",
        len(results),
        summary["infected"],
        summary["unchecked"],
        summary["clean"],
        summary["skipped"],
        summary["error"],
    )
    return {"total": len(results), "results": results, "summary": summary}
