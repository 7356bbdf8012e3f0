"""ScanGuard Celery worker package.

Modules
-------
scan_worker
    Single-file scan task and the scheduled background sweep wrapping
    :class:`~scanguard.core.coordinator.ScanCoordinator`.
"""
