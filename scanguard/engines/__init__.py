"""Scan engine adapters for ScanGuard.

Public re-exports for the engines package. Import adapters via this
module to avoid coupling to internal module layout::

    from scanguard.engines import ClamAVEngine, ScanEngine, ScanSession
"""

from scanguard.engines.base import ScanEngine, ScanEngineError, ScanSession
from scanguard.engines.clamav import ClamAVEngine, ClamAVSession

__all__ = [
    "ClamAVEngine",
    "ClamAVSession",
    "ScanEngine",
    "ScanEngineError",
    "ScanSession",
]
