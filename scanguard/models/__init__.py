"""ORM model registry - import all models so Alembic autogenerate can detect them."""

from scanguard.models.activity_event import ActivityRecord
from scanguard.models.scan_record import ScanRecord

__all__ = [
    "ActivityRecord",
    "ScanRecord",
]
