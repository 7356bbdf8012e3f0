"""VerdictProcessor — apply the infected / unchecked / clean policy to a target.

:class:`VerdictProcessor` is the one place where a scan verdict turns into
side effects.  The policy depends on the verdict and on the execution
context:

+-----------+------------------------------------+------------------------------------+
| Verdict   | foreground (upload)                | background (scheduled sweep)       |
+===========+====================================+====================================+
| infected  | delete, publish activity, mail,    | delete only when                   |
|           | return an ``abort`` outcome        | ``infected_action == "delete"``;   |
|           |                                    | publish activity                   |
+-----------+------------------------------------+------------------------------------+
| unchecked | log a warning                      | log a warning                      |
+-----------+------------------------------------+------------------------------------+
| clean     | nothing                            | replace the file's scan record     |
+-----------+------------------------------------+------------------------------------+

A foreground infected verdict is the only case that stops the surrounding
request.  It is reported as :class:`ProcessOutcome` with ``action="abort"``
and a JSON-ready payload; the caller decides how to end the request.
Background processing never aborts, so a single bad file cannot stop a
sweep.

The collaborator interfaces consumed here (:class:`ActivitySink`,
:class:`Notifier`, :class:`ScanRecordRepository`, :class:`TrashHook`) are
injected at construction time so the processor can be tested with fakes.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol, runtime_checkable

from prometheus_client import Counter

from scanguard.config import InfectedAction
from scanguard.core.scan_target import ScanTarget
from scanguard.core.verdict import Verdict
from scanguard.models.scan_record import ScanRecord
from scanguard.storage.base import DeleteError, StorageBackend

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

_VERDICTS_PROCESSED = Counter(
    "scanguard_verdicts_processed_total",
    "Total scan verdicts processed by status and execution context",
    ["status", "context"],  # context: foreground | background
)
_DELETE_ERRORS = Counter(
    "scanguard_infected_delete_errors_total",
    "Total failures deleting infected files",
)

# ---------------------------------------------------------------------------
# Activity constants
# ---------------------------------------------------------------------------

APP_NAME = "scanguard"
TYPE_VIRUS_DETECTED = "virus detected"
SUBJECT_VIRUS_DETECTED = "virus detected"
MESSAGE_FILE_DELETED = "file deleted"


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityEvent:
    """A user-facing activity entry, e.g. "virus detected in <path>".

    Attributes:
        app: Name of the emitting application.
        type: Activity category (``"virus detected"``).
        subject: Subject key of the entry.
        subject_params: ``(path, verdict details)``.
        message: ``"file deleted"`` when the file was removed, else ``""``.
        object_path: Backend-relative path of the affected file.
        affected_user: Owner of the file at the time the event was emitted.
        created_at: UTC timestamp of the event.
    """

    app: str
    type: str
    subject: str
    subject_params: tuple[str, ...]
    message: str
    object_path: str
    affected_user: str
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


class ActivitySink(ABC):
    """Fire-and-forget destination for activity events."""

    @abstractmethod
    def publish(self, event: ActivityEvent) -> None:
        """Publish *event*.  Implementations must not raise."""


class Notifier(ABC):
    """Fire-and-forget mail notification about an infected upload."""

    @abstractmethod
    def send_mail(self, path: str) -> None:
        """Notify about the infected file at *path*.  Implementations must not raise."""


class RecordNotFoundError(LookupError):
    """Raised by :meth:`ScanRecordRepository.find_by_file_id` when no record exists."""


class PersistenceError(Exception):
    """Raised when the scan record store fails to read or write."""


class ScanRecordRepository(ABC):
    """Persistence for per-file last-checked timestamps."""

    @abstractmethod
    def find_by_file_id(self, file_id: str) -> ScanRecord:
        """Return the record for *file_id*.

        Raises:
            RecordNotFoundError: If no record exists.
            PersistenceError: If the store cannot be queried.
        """

    @abstractmethod
    def delete(self, record: ScanRecord) -> None:
        """Remove *record*."""

    @abstractmethod
    def insert(self, record: ScanRecord) -> ScanRecord:
        """Persist *record* and return it."""


@runtime_checkable
class TrashHook(Protocol):
    """Optional trash-bin capability bracketing an outright delete.

    Satisfied structurally, e.g. by :class:`~scanguard.storage.trashbin.TrashBin`.
    """

    def pre_delete(self) -> None:
        """Called right before the infected file is removed."""

    def post_delete(self) -> None:
        """Called right after the removal, whether it succeeded or not."""


# ---------------------------------------------------------------------------
# ProcessOutcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of processing a verdict.

    Attributes:
        action: ``"continue"`` — the caller carries on normally.
            ``"abort"`` — the caller must stop the current request and
            return :attr:`payload` to the user.
        payload: Structured error payload for ``"abort"``; ``None`` otherwise.
    """

    action: Literal["continue", "abort"]
    payload: dict[str, Any] | None = None

    @property
    def aborted(self) -> bool:
        return self.action == "abort"

    @classmethod
    def abort(cls, message: str) -> "ProcessOutcome":
        return cls(action="abort", payload={"status": "error", "data": {"message": message}})


CONTINUE = ProcessOutcome(action="continue")


# ---------------------------------------------------------------------------
# VerdictProcessor
# ---------------------------------------------------------------------------


class VerdictProcessor:
    """Dispatches a :class:`~scanguard.core.verdict.Verdict` to its policy.

    Stateless after construction; one instance may serve many threads.

    Args:
        storage: Backend used to delete infected files and resolve owners.
        activity: Sink receiving "virus detected" events.
        notifier: Mail notifier for infected uploads.
        records: Scan record store updated on clean background scans and
            cleared when an infected file is deleted.
        infected_action: ``"delete"`` or ``"keep"``; only consulted for
            background scans.  Foreground infected files are always deleted.
        trash_hook: Optional trash-bin hook.  When ``None`` deletes are not
            bracketed.
    """

    def __init__(
        self,
        storage: StorageBackend,
        activity: ActivitySink,
        notifier: Notifier,
        records: ScanRecordRepository,
        infected_action: InfectedAction = "keep",
        trash_hook: TrashHook | None = None,
    ) -> None:
        self._storage = storage
        self._activity = activity
        self._notifier = notifier
        self._records = records
        self._infected_action = infected_action
        self._trash_hook = trash_hook

    def process(
        self,
        target: ScanTarget,
        verdict: Verdict,
        *,
        background: bool,
    ) -> ProcessOutcome:
        """Apply the policy for *verdict* to *target*.

        Returns:
            :data:`CONTINUE`, or an ``"abort"`` :class:`ProcessOutcome` for a
            foreground infected verdict.
        """
        _VERDICTS_PROCESSED.labels(
            status=verdict.status,
            context="background" if background else "foreground",
        ).inc()

        if verdict.is_infected:
            return self._process_infected(target, verdict, background)
        if verdict.is_unchecked:
            self._process_unchecked(target, verdict)
            return CONTINUE
        self._process_clean(target, background)
        return CONTINUE

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _process_infected(
        self,
        target: ScanTarget,
        verdict: Verdict,
        background: bool,
    ) -> ProcessOutcome:
        should_delete = not background or self._infected_action == "delete"
        # Resolved before the delete; the owner lookup fails once the file is gone.
        _, owner, _ = target.log_fields()

        deleted = self._delete(target, owner) if should_delete else False
        if deleted:
            self._forget_record(target, owner)

        self._activity.publish(
            ActivityEvent(
                app=APP_NAME,
                type=TYPE_VIRUS_DETECTED,
                subject=SUBJECT_VIRUS_DETECTED,
                subject_params=(target.path, verdict.details),
                message=MESSAGE_FILE_DELETED if deleted else "",
                object_path=target.path,
                affected_user=owner or "",
            )
        )

        if background:
            if deleted:
                logger.error(
                    "Infected file deleted. %s file_id=%s owner=%s path=%s",
                    verdict.details,
                    target.id,
                    owner,
                    target.path,
                )
            else:
                logger.error(
                    "File is infected. %s file_id=%s owner=%s path=%s",
                    verdict.details,
                    target.id,
                    owner,
                    target.path,
                )
            return CONTINUE

        logger.error(
            "Virus(es) found: %s file_id=%s owner=%s path=%s",
            verdict.details,
            target.id,
            owner,
            target.path,
        )
        self._notifier.send_mail(target.path)
        return ProcessOutcome.abort(
            f"Virus detected! Can't upload the file {os.path.basename(target.path)}"
        )

    def _process_unchecked(self, target: ScanTarget, verdict: Verdict) -> None:
        # TODO: surface a "file could not be checked" warning to the uploader
        file_id, owner, path = target.log_fields()
        logger.warning(
            "Not Checked. %s file_id=%s owner=%s path=%s",
            verdict.details,
            file_id,
            owner,
            path,
        )

    def _process_clean(self, target: ScanTarget, background: bool) -> None:
        if not background:
            return
        try:
            try:
                record = self._records.find_by_file_id(target.id)
                self._records.delete(record)
            except RecordNotFoundError:
                pass

            self._records.insert(
                ScanRecord(file_id=target.id, checked_at=datetime.now(tz=timezone.utc))
            )
        except PersistenceError as exc:
            file_id, owner, path = target.log_fields()
            logger.error(
                "Failed to record clean scan: file_id=%s owner=%s path=%s error=%s",
                file_id,
                owner,
                path,
                exc,
            )
        except Exception as exc:
            file_id, owner, path = target.log_fields()
            logger.error(
                "Unexpected error recording clean scan: file_id=%s owner=%s path=%s error=%r",
                file_id,
                owner,
                path,
                exc,
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _forget_record(self, target: ScanTarget, owner: str | None) -> None:
        """Drop the scan record of a deleted file so its id cannot skip a re-scan."""
        try:
            record = self._records.find_by_file_id(target.id)
            self._records.delete(record)
        except RecordNotFoundError:
            pass
        except Exception as exc:
            logger.error(
                "Failed to drop scan record: file_id=%s owner=%s path=%s error=%r",
                target.id,
                owner,
                target.path,
                exc,
            )

    def _delete(self, target: ScanTarget, owner: str | None) -> bool:
        """Remove *target* outright, bypassing the trash bin.

        Returns ``True`` on success; a :class:`DeleteError` is logged and
        reported as ``False``.
        """
        if self._trash_hook is not None:
            self._trash_hook.pre_delete()
        try:
            self._storage.delete(target.path)
        except DeleteError as exc:
            _DELETE_ERRORS.inc()
            logger.error(
                "Failed to delete infected file: file_id=%s owner=%s path=%s error=%s",
                target.id,
                owner,
                target.path,
                exc,
            )
            return False
        finally:
            if self._trash_hook is not None:
                self._trash_hook.post_delete()
        return True
