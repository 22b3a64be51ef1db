"""Unit lock (hard lock) and legacy block models."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntIDMixin, TimestampMixin

LOCK_SOURCE_SYSTEM = "SYSTEM"
LOCK_SOURCE_OTA = "OTA"


class UnitLock(Base, IntIDMixin, TimestampMixin):
    """Authoritative occupancy of a unit over [start_date, end_date).

    A null owner booking means a manual block.
    """

    __tablename__ = "unit_locks"

    unit_id: Mapped[int] = mapped_column(Integer, index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    lock_source: Mapped[str] = mapped_column(String(10), default=LOCK_SOURCE_SYSTEM)  # SYSTEM/OTA
    lock_owner_booking_id: Mapped[int | None] = mapped_column(
        Integer, default=None, nullable=True, unique=True
    )
    reason: Mapped[str | None] = mapped_column(String(240), default=None)
    created_by: Mapped[int | None] = mapped_column(Integer, default=None, nullable=True)

    def as_audit_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "booking_id": self.lock_owner_booking_id,
            "source": self.lock_source,
        }

    def __repr__(self) -> str:
        return f"<UnitLock unit={self.unit_id} {self.start_date}..{self.end_date} booking={self.lock_owner_booking_id}>"


class LegacyBlock(Base, IntIDMixin):
    """Deprecated block table, still consulted for overlaps."""

    __tablename__ = "blocks"

    unit_id: Mapped[int] = mapped_column(Integer, index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    reason: Mapped[str | None] = mapped_column(String(240), default=None)

    def __repr__(self) -> str:
        return f"<LegacyBlock unit={self.unit_id} {self.start_date}..{self.end_date}>"
