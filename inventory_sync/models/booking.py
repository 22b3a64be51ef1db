"""Booking model. Owned by booking flows; read by the guard and the importer."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntIDMixin, TimestampMixin

BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_PENDING = "PENDING"
BOOKING_CANCELLED = "CANCELLED"

BLOCKING_STATUSES = (BOOKING_CONFIRMED, BOOKING_PENDING)


class Booking(Base, IntIDMixin, TimestampMixin):
    """A stay on one unit over [checkin, checkout)."""

    __tablename__ = "booking"

    unit_id: Mapped[int] = mapped_column(Integer, index=True)
    checkin: Mapped[date] = mapped_column(Date)
    checkout: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        String(20), default=BOOKING_CONFIRMED
    )  # CONFIRMED/PENDING/CANCELLED
    origin_channel: Mapped[str | None] = mapped_column(String(50), default=None)
    guest_name: Mapped[str | None] = mapped_column(String(200), default=None)
    external_ref: Mapped[str | None] = mapped_column(String(120), default=None, index=True)
    import_source: Mapped[str | None] = mapped_column(String(100), default=None)

    def __repr__(self) -> str:
        return f"<Booking #{self.id} unit={self.unit_id} {self.checkin}..{self.checkout} {self.status}>"
