"""Reservation importer for channel webhook deliveries.

Vendor formats are normalized upstream; this importer accepts records that
already carry ``unit_id``, ``checkin`` and ``checkout`` and turns them into
bookings, skipping duplicates and stays that overlap an active booking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.booking import BLOCKING_STATUSES, BOOKING_CONFIRMED, BOOKING_PENDING, Booking
from .debounce import coerce_unit_id

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 10


@dataclass
class ImportedReservation:
    booking_id: int
    unit_id: int
    checkin: date
    checkout: date
    record: dict = field(default_factory=dict)


@dataclass
class ImportResult:
    channel_key: str
    inserted: list[ImportedReservation] = field(default_factory=list)
    duplicates: list[dict] = field(default_factory=list)
    conflicts: list[dict] = field(default_factory=list)
    unmatched: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    total_records: int = 0

    @property
    def status(self) -> str:
        if self.errors and not self.inserted:
            return "failed"
        if self.errors:
            return "partial"
        return "processed"

    def summary(self) -> dict:
        return {
            "channel_key": self.channel_key,
            "total_records": self.total_records,
            "inserted_count": len(self.inserted),
            "duplicate_count": len(self.duplicates),
            "conflict_count": len(self.conflicts),
            "unmatched_count": len(self.unmatched),
            "error_count": len(self.errors),
            "sample": {
                "inserted": [
                    {
                        "booking_id": item.booking_id,
                        "unit_id": item.unit_id,
                        "checkin": item.checkin.isoformat(),
                        "checkout": item.checkout.isoformat(),
                    }
                    for item in self.inserted[:SAMPLE_SIZE]
                ],
                "duplicates": self.duplicates[:SAMPLE_SIZE],
                "conflicts": self.conflicts[:SAMPLE_SIZE],
                "unmatched": self.unmatched[:SAMPLE_SIZE],
                "errors": self.errors[:5],
            },
        }


class ReservationImporter(Protocol):
    async def import_from_webhook(
        self,
        channel_key: str,
        payload: Any,
        source_label: str,
        target_status: str | None = None,
    ) -> ImportResult: ...


def extract_records(payload: Any) -> list[dict]:
    """Pull reservation records out of a normalized webhook payload."""
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get("reservations"), list):
        return [item for item in payload["reservations"] if isinstance(item, dict)]
    if isinstance(payload.get("reservation"), dict):
        return [payload["reservation"]]
    if "checkin" in payload or "unit_id" in payload:
        return [payload]
    return []


def _parse_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _record_ref(record: dict) -> dict:
    return {
        "external_ref": record.get("external_ref"),
        "guest_name": record.get("guest_name"),
        "checkin": record.get("checkin"),
        "checkout": record.get("checkout"),
    }


class WebhookImporter:
    """Default importer writing bookings through its own session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def import_from_webhook(
        self,
        channel_key: str,
        payload: Any,
        source_label: str,
        target_status: str | None = None,
    ) -> ImportResult:
        records = extract_records(payload)
        result = ImportResult(channel_key=channel_key, total_records=len(records))

        async with self._session_factory() as db:
            for record in records:
                try:
                    await self._import_record(db, record, channel_key, source_label, target_status, result)
                except Exception as exc:
                    await db.rollback()
                    logger.warning("Failed to import %s reservation: %s", channel_key, exc)
                    result.errors.append({**_record_ref(record), "error": str(exc)})
        return result

    async def _import_record(
        self,
        db: AsyncSession,
        record: dict,
        channel_key: str,
        source_label: str,
        target_status: str | None,
        result: ImportResult,
    ) -> None:
        unit_id = coerce_unit_id(record.get("unit_id"))
        checkin = _parse_date(record.get("checkin"))
        checkout = _parse_date(record.get("checkout"))
        if unit_id is None:
            result.unmatched.append({**_record_ref(record), "reason": "unit_not_found"})
            return
        if checkin is None or checkout is None or checkout <= checkin:
            result.unmatched.append({**_record_ref(record), "reason": "invalid_dates"})
            return

        external_ref = str(record["external_ref"]).strip() if record.get("external_ref") else None
        if external_ref:
            existing = (
                await db.execute(select(Booking.id).where(Booking.external_ref == external_ref).limit(1))
            ).scalar_one_or_none()
            if existing is not None:
                result.duplicates.append({**_record_ref(record), "booking_id": existing})
                return

        overlap = (
            await db.execute(
                select(Booking.id)
                .where(
                    Booking.unit_id == unit_id,
                    Booking.status.in_(BLOCKING_STATUSES),
                    Booking.checkin < checkout,
                    Booking.checkout > checkin,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        if overlap is not None:
            result.conflicts.append({**_record_ref(record), "booking_id": overlap})
            return

        status = target_status or record.get("status") or BOOKING_CONFIRMED
        if status not in (BOOKING_CONFIRMED, BOOKING_PENDING):
            status = BOOKING_CONFIRMED
        booking = Booking(
            unit_id=unit_id,
            checkin=checkin,
            checkout=checkout,
            status=status,
            origin_channel=channel_key,
            guest_name=(record.get("guest_name") or "Guest"),
            external_ref=external_ref,
            import_source=source_label,
        )
        db.add(booking)
        await db.commit()
        await db.refresh(booking)
        result.inserted.append(
            ImportedReservation(
                booking_id=booking.id,
                unit_id=unit_id,
                checkin=checkin,
                checkout=checkout,
                record=record,
            )
        )
