from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from scanguard.db.base import Base


class ScanRecord(Base):
    """Last time a stored file was scanned and found clean.

    At most one row exists per ``file_id``; the verdict processor replaces
    the previous row on every clean background scan.
    """

    __tablename__ = "scan_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"ScanRecord(file_id={self.file_id!r}, checked_at={self.checked_at!r})"
