"""Explicit wiring of the scan collaborators.

:func:`build_services` constructs every collaborator the
:class:`~scanguard.core.coordinator.ScanCoordinator` needs from a
:class:`~scanguard.config.Settings` instance.  Entry points (API, Celery
workers) call :func:`get_services` once per process; tests build their own
:class:`ScanServices` from fakes.
"""
from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass

from scanguard.config import Settings, get_settings
from scanguard.core.coordinator import ScanCoordinator
from scanguard.db.session import create_db_engine, create_session_factory, init_db
from scanguard.engines.base import ScanEngine
from scanguard.engines.clamav import ClamAVEngine
from scanguard.services.activity import ActivityService
from scanguard.services.notification import MailNotifier
from scanguard.services.scan_records import ScanRecordStore
from scanguard.storage.local import LocalStorageBackend
from scanguard.storage.trashbin import TrashBin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanServices:
    """The collaborators shared by every scan in a process."""

    settings: Settings
    storage: LocalStorageBackend
    engine: ScanEngine
    activity: ActivityService
    notifier: MailNotifier
    records: ScanRecordStore
    trashbin: TrashBin | None

    def coordinator(self) -> ScanCoordinator:
        return ScanCoordinator(
            storage=self.storage,
            engine=self.engine,
            activity=self.activity,
            notifier=self.notifier,
            records=self.records,
            settings=self.settings,
            trash_hook=self.trashbin,
        )


def build_services(settings: Settings) -> ScanServices:
    """Construct all scan collaborators from *settings*."""
    root = os.path.realpath(settings.storage_root)
    trashbin = (
        TrashBin(os.path.join(root, settings.trashbin_dir))
        if settings.trashbin_enabled
        else None
    )

    db_engine = create_db_engine(settings.database_url)
    if settings.database_url.startswith("sqlite"):
        init_db(db_engine)
    session_factory = create_session_factory(db_engine)

    services = ScanServices(
        settings=settings,
        storage=LocalStorageBackend(root, trashbin=trashbin),
        engine=ClamAVEngine(
            host=settings.clamav_host,
            port=settings.clamav_port,
            timeout=settings.clamav_timeout,
            stream_max_length=settings.av_stream_max_length,
        ),
        activity=ActivityService(session_factory, secret_key=settings.secret_key),
        notifier=MailNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            recipient=settings.av_notify_address,
            username=settings.smtp_username,
            password=settings.smtp_password,
        ),
        records=ScanRecordStore(session_factory),
        trashbin=trashbin,
    )
    logger.info(
        "Scan services ready: storage_root=%s trashbin=%s clamav=%s:%d",
        root,
        trashbin is not None,
        settings.clamav_host,
        settings.clamav_port,
    )
    return services


@functools.lru_cache(maxsize=1)
def get_services() -> ScanServices:
    """Return the process-wide :class:`ScanServices`, building it on first use."""
    return build_services(get_settings())
