"""ActivityService — tamper-evident "virus detected" activity events.

:class:`ActivityService` persists each
:class:`~scanguard.core.verdict_processor.ActivityEvent` as an
:class:`~scanguard.models.activity_event.ActivityRecord` row signed with an
HMAC-SHA256 over its canonical fields, and emits a structured JSON log entry
for log-aggregation systems.  All writes are INSERT-only.

Publishing is **fire-and-forget**: database failures are logged but never
raised, so a degraded activity store cannot interrupt scan processing.

Usage::

    from scanguard.services.activity import ActivityService

    service = ActivityService(session_factory, secret_key=settings.secret_key)
    service.publish(event)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from scanguard.core.verdict_processor import ActivityEvent, ActivitySink
from scanguard.models.activity_event import ActivityRecord

logger = logging.getLogger(__name__)


class ActivityService(ActivitySink):
    """Append-only activity store with HMAC-SHA256 integrity signing.

    Args:
        session_factory: ``sessionmaker`` producing synchronous sessions.
        secret_key: Raw HMAC secret.  Must be kept confidential; leaking it
            allows an attacker to forge signatures.
    """

    def __init__(self, session_factory: sessionmaker[Session], secret_key: str) -> None:
        self._session_factory = session_factory
        self._secret_key: bytes = secret_key.encode("utf-8")

    # ------------------------------------------------------------------
    # Signature helpers
    # ------------------------------------------------------------------

    def compute_hmac(self, record: ActivityRecord) -> str:
        """Return the HMAC-SHA256 hex digest for *record*.

        The canonical message is the compact, key-sorted JSON encoding of
        ``id``, ``type``, ``subject_params``, ``message``, ``object_path``,
        ``affected_user`` and ``created_at`` (ISO-8601).
        """
        canonical = json.dumps(
            {
                "id": str(record.id),
                "type": record.type,
                "subject_params": list(record.subject_params),
                "message": record.message,
                "object_path": record.object_path,
                "affected_user": record.affected_user,
                "created_at": record.created_at.isoformat(),
            },
            separators=(",", ":"),
            sort_keys=True,
        )
        return hmac.new(self._secret_key, canonical.encode(), hashlib.sha256).hexdigest()

    def verify_hmac(self, record: ActivityRecord) -> bool:
        """Return ``True`` if *record*'s stored signature is valid."""
        return hmac.compare_digest(self.compute_hmac(record), record.hmac_signature)

    # ------------------------------------------------------------------
    # ActivitySink interface
    # ------------------------------------------------------------------

    def publish(self, event: ActivityEvent) -> None:
        record = ActivityRecord(
            id=uuid.uuid4(),
            app=event.app,
            type=event.type,
            subject=event.subject,
            subject_params=list(event.subject_params),
            message=event.message,
            object_path=event.object_path,
            affected_user=event.affected_user,
            created_at=event.created_at,
        )
        record.hmac_signature = self.compute_hmac(record)

        try:
            with self._session_factory.begin() as session:
                session.add(record)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to persist activity event type=%s path=%s: %s",
                event.type,
                event.object_path,
                exc,
            )
            return

        logger.info(
            json.dumps({
                "event": "activity_published",
                "activity_id": str(record.id),
                "type": event.type,
                "affected_user": event.affected_user,
                "object_path": event.object_path,
                "message": event.message,
            })
        )
