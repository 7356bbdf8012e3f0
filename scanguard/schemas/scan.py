"""Pydantic schemas for the foreground scan endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    """Body of ``POST /v1/scan``."""

    path: str = Field(..., min_length=1, description="Backend-relative path of the uploaded file")
    file_id: str | None = Field(
        default=None,
        description="Known identifier of the file; resolved from storage when omitted",
    )


class ScanResponse(BaseModel):
    """Result of a foreground scan that did not abort the upload."""

    path: str
    file_id: str
    status: Literal["unchecked", "clean", "skipped"]
    details: str = ""
    bytes_scanned: int = 0
