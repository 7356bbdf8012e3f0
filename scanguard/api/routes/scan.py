"""Foreground scan endpoint.

``POST /v1/scan`` scans a freshly uploaded file in foreground context.  An
infected upload is deleted by the core, which returns an ``abort`` outcome;
this handler ends the request with ``403`` and the abort payload.

Status codes:

* ``200`` — the upload was not rejected (clean, unchecked, or skipped).
* ``400`` — the path resolves outside the storage root.
* ``403`` — malware detected; body is ``{"status": "error", "data": {"message": ...}}``.
* ``404`` — no file exists at the given path.
* ``500`` — the file exists but could not be read.
* ``503`` — the storage backend is unavailable.

The handler is a plain ``def`` so FastAPI runs the blocking scan in its
thread pool.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from scanguard.container import get_services
from scanguard.core.coordinator import ScanCoordinator
from scanguard.schemas.scan import ScanRequest, ScanResponse
from scanguard.storage.base import (
    BackendError,
    InvalidPathError,
    StorageError,
    StreamOpenError,
    TargetNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["scan"])


def get_coordinator() -> ScanCoordinator:
    """FastAPI dependency returning a coordinator over the process services."""
    return get_services().coordinator()


@router.post(
    "/scan",
    response_model=ScanResponse,
    responses={
        400: {"description": "Path outside the storage root"},
        403: {"description": "Malware detected; the upload was deleted"},
    },
)
def scan_upload(
    body: ScanRequest,
    coordinator: ScanCoordinator = Depends(get_coordinator),
):
    try:
        report = coordinator.scan(body.path, background=False, file_id=body.file_id)
    except InvalidPathError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TargetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except BackendError as exc:
        logger.error("Storage backend unavailable for path=%s: %s", body.path, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage backend unavailable",
        ) from exc
    except StreamOpenError as exc:
        logger.error("Cannot read upload path=%s: %s", body.path, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Uploaded file could not be read for scanning",
        ) from exc
    except StorageError as exc:
        logger.error("Storage fault scanning path=%s: %r", body.path, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Storage fault while scanning the upload",
        ) from exc

    if report.outcome.aborted:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=report.outcome.payload)

    return ScanResponse(
        path=report.path,
        file_id=report.file_id,
        status=report.status,
        details=report.details,
        bytes_scanned=report.bytes_scanned,
    )
