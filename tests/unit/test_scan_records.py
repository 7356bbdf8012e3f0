"""Unit tests for ScanRecordStore against an in-memory SQLite database.

Coverage targets
----------------
* ``find_by_file_id`` returns the stored record or raises ``RecordNotFoundError``.
* ``delete`` + ``insert`` replace the record for a file id.
* A duplicate ``insert`` surfaces as ``PersistenceError``.
* ``checked_since`` returns only ids checked after the cutoff.
* Database failures are wrapped as ``PersistenceError``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from scanguard.core.verdict_processor import PersistenceError, RecordNotFoundError
from scanguard.db.session import create_db_engine, create_session_factory, init_db
from scanguard.models.scan_record import ScanRecord
from scanguard.services.scan_records import ScanRecordStore


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> ScanRecordStore:
    return ScanRecordStore(session_factory)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class TestFindAndReplace:
    def test_missing_record_raises_not_found(self, store) -> None:
        with pytest.raises(RecordNotFoundError):
            store.find_by_file_id("nope")

    def test_insert_then_find(self, store) -> None:
        store.insert(ScanRecord(file_id="abc", checked_at=_now()))
        found = store.find_by_file_id("abc")
        assert found.file_id == "abc"
        assert found.id is not None

    def test_delete_then_insert_replaces(self, store, session_factory) -> None:
        store.insert(ScanRecord(file_id="abc", checked_at=_now() - timedelta(days=3)))
        old = store.find_by_file_id("abc")
        store.delete(old)
        store.insert(ScanRecord(file_id="abc", checked_at=_now()))

        with session_factory() as session:
            rows = session.query(ScanRecord).filter_by(file_id="abc").all()
        assert len(rows) == 1
        assert rows[0].checked_at > old.checked_at

    def test_insert_after_not_found(self, store) -> None:
        with pytest.raises(RecordNotFoundError):
            store.find_by_file_id("abc")
        store.insert(ScanRecord(file_id="abc", checked_at=_now()))
        assert store.find_by_file_id("abc").file_id == "abc"

    def test_duplicate_insert_raises_persistence_error(self, store) -> None:
        store.insert(ScanRecord(file_id="abc", checked_at=_now()))
        with pytest.raises(PersistenceError):
            store.insert(ScanRecord(file_id="abc", checked_at=_now()))


class TestCheckedSince:
    def test_returns_only_recent_ids(self, store) -> None:
        store.insert(ScanRecord(file_id="old", checked_at=_now() - timedelta(days=10)))
        store.insert(ScanRecord(file_id="new", checked_at=_now() - timedelta(hours=1)))
        assert store.checked_since(_now() - timedelta(days=7)) == {"new"}

    def test_empty_table_returns_empty_set(self, store) -> None:
        assert store.checked_since(_now()) == set()


class TestFailures:
    def test_query_failure_wrapped(self) -> None:
        factory = MagicMock()
        factory.return_value.__enter__.return_value.scalars.side_effect = OperationalError(
            "SELECT", {}, Exception("database is locked")
        )
        with pytest.raises(PersistenceError):
            ScanRecordStore(factory).find_by_file_id("abc")

    def test_insert_failure_wrapped(self) -> None:
        factory = MagicMock()
        factory.begin.return_value.__enter__.return_value.add.side_effect = OperationalError(
            "INSERT", {}, Exception("disk I/O error")
        )
        with pytest.raises(PersistenceError):
            ScanRecordStore(factory).insert(ScanRecord(file_id="abc", checked_at=_now()))
