"""Celery application factory for ScanGuard.

Creates and configures the shared Celery application used for single-file
scans and the scheduled background sweep.

The broker and result backend are both configured to use Redis (sourced from
``settings.redis_url``).  Tasks are routed to a ``scanguard`` queue by default.

Starting a worker::

    celery -A scanguard.celery_app worker --loglevel=info -Q scanguard

Starting the beat scheduler::

    celery -A scanguard.celery_app beat --loglevel=info
"""

from celery import Celery

from scanguard.config import get_settings

settings = get_settings()

#: Shared Celery application instance.  Import this in task modules.
celery_app = Celery(
    "scanguard",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    # Task modules that define @celery_app.task decorators.
    include=["scanguard.workers.scan_worker"],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # All ScanGuard tasks go to the "scanguard" queue
    task_default_queue="scanguard",
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Keep results for 24 h
    result_expires=86400,
)

# ---------------------------------------------------------------------------
# Beat schedule: periodic background re-scan of stored files
# ---------------------------------------------------------------------------

celery_app.conf.beat_schedule = {
    "background-virus-scan": {
        "task": "scanguard.workers.scan_worker.background_scan_task",
        "schedule": settings.background_interval_seconds,
        "options": {"queue": "scanguard"},
    },
}
