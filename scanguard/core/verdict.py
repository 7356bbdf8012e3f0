"""Scan verdict returned by an engine session.

A :class:`Verdict` is one of three tagged outcomes:

* ``"infected"``  – the engine detected malware; ``details`` names it.
* ``"unchecked"`` – the file could not be fully checked (engine error,
  oversize stream, incomplete scan); ``details`` explains why.
* ``"clean"``     – the engine consumed the whole stream and found nothing.

Usage::

    from scanguard.core.verdict import Verdict

    verdict = Verdict.infected("Win.Test.EICAR_HDB-1")
    if verdict.is_infected:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

VerdictStatus = Literal["infected", "unchecked", "clean"]

_STATUSES: frozenset[str] = frozenset({"infected", "unchecked", "clean"})


@dataclass(frozen=True)
class Verdict:
    """Immutable classification of a scanned file.

    Attributes:
        status: ``"infected"``, ``"unchecked"`` or ``"clean"``.
        details: Human-readable engine message.  Required for ``"infected"``
            and ``"unchecked"``; empty for ``"clean"``.
    """

    status: VerdictStatus
    details: str = ""

    def __post_init__(self) -> None:
        if self.status not in _STATUSES:
            raise ValueError(f"Unknown verdict status {self.status!r}")
        if self.status != "clean" and not self.details:
            raise ValueError(f"A {self.status!r} verdict requires details")

    @classmethod
    def infected(cls, details: str) -> "Verdict":
        return cls(status="infected", details=details)

    @classmethod
    def unchecked(cls, details: str) -> "Verdict":
        return cls(status="unchecked", details=details)

    @classmethod
    def clean(cls) -> "Verdict":
        return cls(status="clean")

    @property
    def is_infected(self) -> bool:
        return self.status == "infected"

    @property
    def is_unchecked(self) -> bool:
        return self.status == "unchecked"

    @property
    def is_clean(self) -> bool:
        return self.status == "clean"
