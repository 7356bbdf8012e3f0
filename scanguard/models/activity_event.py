import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from scanguard.db.base import Base


class ActivityRecord(Base):
    """Tamper-evident record of a user-facing activity event (e.g. virus detected).

    Append-only: no UPDATE or DELETE is permitted at the application layer.
    """

    __tablename__ = "activity_event"
    __table_args__ = (
        Index("ix_activity_event_affected_user", "affected_user"),
        Index("ix_activity_event_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    app: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    subject_params: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    object_path: Mapped[str] = mapped_column(Text, nullable=False)
    affected_user: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hmac_signature: Mapped[str] = mapped_column(Text, nullable=False)


def _raise_on_update(mapper, connection, target):
    """Prevent in-process UPDATE on ActivityRecord (append-only guard)."""
    raise RuntimeError(
        "ActivityRecord is append-only; UPDATE operations are not permitted."
    )


def _raise_on_delete(mapper, connection, target):
    """Prevent in-process DELETE on ActivityRecord (append-only guard)."""
    raise RuntimeError(
        "ActivityRecord is append-only; DELETE operations are not permitted."
    )


event.listen(ActivityRecord, "before_update", _raise_on_update)
event.listen(ActivityRecord, "before_delete", _raise_on_delete)
