"""ScanRecordStore — SQLAlchemy-backed last-checked timestamps per file.

Each method opens its own session from the injected factory and commits
before returning, so every individual write is atomic and the store can be
shared by concurrent scan threads.  Rows are keyed by the unique
``file_id`` column; operations on different files never contend.

Usage::

    from scanguard.services.scan_records import ScanRecordStore

    store = ScanRecordStore(session_factory)
    try:
        record = store.find_by_file_id("1234")
    except RecordNotFoundError:
        record = None
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from scanguard.core.verdict_processor import (
    PersistenceError,
    RecordNotFoundError,
    ScanRecordRepository,
)
from scanguard.models.scan_record import ScanRecord

logger = logging.getLogger(__name__)


class ScanRecordStore(ScanRecordRepository):
    """Scan record repository over a relational database.

    Args:
        session_factory: ``sessionmaker`` producing synchronous sessions.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_by_file_id(self, file_id: str) -> ScanRecord:
        try:
            with self._session_factory() as session:
                record = session.scalars(
                    select(ScanRecord).where(ScanRecord.file_id == file_id)
                ).one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to look up scan record for {file_id!r}: {exc}") from exc

        if record is None:
            raise RecordNotFoundError(f"No scan record for file_id={file_id!r}")
        return record

    def delete(self, record: ScanRecord) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(delete(ScanRecord).where(ScanRecord.id == record.id))
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to delete scan record for {record.file_id!r}: {exc}"
            ) from exc
        logger.debug("ScanRecordStore: deleted record file_id=%s", record.file_id)

    def insert(self, record: ScanRecord) -> ScanRecord:
        try:
            with self._session_factory.begin() as session:
                session.add(record)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to insert scan record for {record.file_id!r}: {exc}"
            ) from exc
        logger.debug(
            "ScanRecordStore: inserted record file_id=%s checked_at=%s",
            record.file_id,
            record.checked_at.isoformat(),
        )
        return record

    def checked_since(self, cutoff: datetime) -> set[str]:
        """Return the ids of files whose last clean scan is newer than *cutoff*."""
        try:
            with self._session_factory() as session:
                rows = session.scalars(
                    select(ScanRecord.file_id).where(ScanRecord.checked_at > cutoff)
                ).all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list recent scan records: {exc}") from exc
        return set(rows)
