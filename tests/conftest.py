"""Shared pytest configuration and fixtures for ScanGuard tests.

Sets required environment variables before any scanguard module is imported,
so that ``scanguard.config.get_settings()`` succeeds in the test environment,
and provides in-memory fakes for every collaborator of the scan core.
"""
from __future__ import annotations

import io
import os

# Set required env vars before any scanguard module is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/1")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-chars-long!!")

import pytest  # noqa: E402

from scanguard.config import Settings  # noqa: E402
from scanguard.core.verdict import Verdict  # noqa: E402
from scanguard.core.verdict_processor import (  # noqa: E402
    ActivityEvent,
    ActivitySink,
    Notifier,
    PersistenceError,
    RecordNotFoundError,
    ScanRecordRepository,
)
from scanguard.engines.base import ScanEngine, ScanSession  # noqa: E402
from scanguard.models.scan_record import ScanRecord  # noqa: E402
from scanguard.storage.base import (  # noqa: E402
    DeleteError,
    StorageBackend,
    StreamOpenError,
    TargetNotFoundError,
)

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars-long!!"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class TrackingStream(io.BytesIO):
    """BytesIO that reports each effective close to its owning storage."""

    def __init__(self, data: bytes, storage: "FakeStorage") -> None:
        super().__init__(data)
        self._storage = storage

    def close(self) -> None:
        if not self.closed:
            self._storage.close_count += 1
        super().close()


class FakeStorage(StorageBackend):
    """In-memory storage backend recording opens, closes and deletes."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()
        self.owners: dict[str, str] = {}
        self.file_ids: dict[str, str] = {}
        self.open_count = 0
        self.close_count = 0
        self.deleted: list[str] = []
        self.streams: list[TrackingStream] = []
        self.fail_open = False
        self.fail_delete = False

    def add_file(
        self,
        path: str,
        data: bytes,
        owner: str = "alice",
        file_id: str | None = None,
    ) -> None:
        self.files[path] = data
        self.owners[path] = owner
        self.file_ids[path] = file_id or f"id-{len(self.file_ids) + 1}"

    def add_dir(self, path: str, owner: str = "alice") -> None:
        self.dirs.add(path)
        self.owners[path] = owner
        self.file_ids[path] = f"dir-{len(self.file_ids) + 1}"

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def is_dir(self, path: str) -> bool:
        return path in self.dirs

    def filesize(self, path: str) -> int:
        return len(self.files.get(path, b""))

    def open(self, path: str, mode: str = "rb") -> TrackingStream:
        if self.fail_open or path not in self.files:
            raise StreamOpenError(f"cannot open {path!r}")
        self.open_count += 1
        stream = TrackingStream(self.files[path], self)
        self.streams.append(stream)
        return stream

    def delete(self, path: str) -> None:
        if self.fail_delete:
            raise DeleteError(f"cannot delete {path!r}")
        self.files.pop(path, None)
        self.deleted.append(path)

    def get_owner(self, path: str) -> str:
        try:
            return self.owners[path]
        except KeyError:
            raise TargetNotFoundError(path) from None

    def get_file_id(self, path: str) -> str:
        return self.file_ids[path]

    def iter_files(self):
        yield from sorted(self.files)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class FakeSession(ScanSession):
    """Scripted engine session.

    Args:
        final: Verdict returned by :meth:`finish` (``None`` = unconfirmed).
        early: Verdict returned by :meth:`feed` once *early_after* bytes
            have been fed.
        early_after: Byte threshold for the early verdict.
    """

    def __init__(
        self,
        final: Verdict | None,
        early: Verdict | None = None,
        early_after: int = 0,
    ) -> None:
        self.final = final
        self.early = early
        self.early_after = early_after
        self.chunks: list[bytes] = []
        self.finished = False
        self.closed = False

    def feed(self, chunk: bytes) -> Verdict | None:
        self.chunks.append(chunk)
        if self.early is not None and sum(len(c) for c in self.chunks) >= self.early_after:
            return self.early
        return None

    def finish(self) -> Verdict | None:
        self.finished = True
        return self.final

    def close(self) -> None:
        self.closed = True


class FakeEngine(ScanEngine):
    def __init__(
        self,
        final: Verdict | None = None,
        early: Verdict | None = None,
        early_after: int = 0,
    ) -> None:
        self.final = final if final is not None else Verdict.clean()
        self.unconfirmed = False
        self.early = early
        self.early_after = early_after
        self.sessions: list[FakeSession] = []

    def open_session(self) -> FakeSession:
        session = FakeSession(
            None if self.unconfirmed else self.final,
            early=self.early,
            early_after=self.early_after,
        )
        self.sessions.append(session)
        return session

    def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Sinks and record store
# ---------------------------------------------------------------------------


class RecordingActivity(ActivitySink):
    def __init__(self) -> None:
        self.events: list[ActivityEvent] = []

    def publish(self, event: ActivityEvent) -> None:
        self.events.append(event)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.paths: list[str] = []

    def send_mail(self, path: str) -> None:
        self.paths.append(path)


class InMemoryRecordStore(ScanRecordRepository):
    """Dict-backed scan record store recording every call."""

    def __init__(self) -> None:
        self.records: dict[str, ScanRecord] = {}
        self.calls: list[str] = []
        self.fail_insert: Exception | None = None

    def find_by_file_id(self, file_id: str) -> ScanRecord:
        self.calls.append("find")
        try:
            return self.records[file_id]
        except KeyError:
            raise RecordNotFoundError(file_id) from None

    def delete(self, record: ScanRecord) -> None:
        self.calls.append("delete")
        self.records.pop(record.file_id, None)

    def insert(self, record: ScanRecord) -> ScanRecord:
        self.calls.append("insert")
        if self.fail_insert is not None:
            raise self.fail_insert
        if record.file_id in self.records:
            raise PersistenceError(f"duplicate file_id {record.file_id!r}")
        self.records[record.file_id] = record
        return record

    def checked_since(self, cutoff) -> set[str]:
        return {fid for fid, r in self.records.items() if r.checked_at > cutoff}


class RecordingTrashHook:
    def __init__(self, log: list[str] | None = None) -> None:
        self.log = log if log is not None else []

    def pre_delete(self) -> None:
        self.log.append("pre_delete")

    def post_delete(self) -> None:
        self.log.append("post_delete")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET,
        "database_url": "sqlite://",
        "av_chunk_size": 4,
        "av_infected_action": "keep",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def activity() -> RecordingActivity:
    return RecordingActivity()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def trash_hook() -> RecordingTrashHook:
    return RecordingTrashHook()


@pytest.fixture
def settings_factory():
    """Return a callable building :class:`Settings` with test defaults."""
    return make_settings
