"""Overbooking guard: the single authority on whether a unit is free.

Every booking flow, internal or channel-sourced, reserves its dates through
``OverbookingGuard.reserve_slot``. The overlap checks and the lock write run
inside one store transaction, so two overlapping reservations for different
bookings can never both commit.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Protocol

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import TransactionalStore
from ..errors import ConflictError, ValidationError
from ..models.booking import BLOCKING_STATUSES, BOOKING_CANCELLED, Booking
from ..models.lock import LOCK_SOURCE_OTA, LOCK_SOURCE_SYSTEM, LegacyBlock, UnitLock

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

AuditSink = Callable[
    [AsyncSession, int | None, str, int, str, dict | None, dict | None], Awaitable[Any]
]


class UpdateNotifier(Protocol):
    def push_update(self, unit_id: Any, update_type: str | None = None, payload: Any = None) -> bool: ...


@dataclass(frozen=True)
class ReservationResult:
    lock_id: int
    created: bool
    updated: bool


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def parse_calendar_date(value: Any, label: str) -> date:
    """Accept a date or a strict YYYY-MM-DD string."""
    if isinstance(value, datetime):
        raise ValidationError(f"Invalid {label} date: expected a calendar date")
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _ISO_DATE.match(value):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(f"Invalid {label} date: {value!r}")


def normalize_source(source: Any) -> str:
    return LOCK_SOURCE_OTA if str(source or "").upper() == LOCK_SOURCE_OTA else LOCK_SOURCE_SYSTEM


class OverbookingGuard:
    """Creates and maintains the hard lock tied to each booking."""

    def __init__(
        self,
        store: TransactionalStore,
        audit: AuditSink | None = None,
        notifier: UpdateNotifier | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.notifier = notifier

    async def reserve_slot(
        self,
        unit_id: int,
        from_date: date | str,
        to_date: date | str,
        booking_id: int,
        actor_id: int | None = None,
        source: str = LOCK_SOURCE_SYSTEM,
    ) -> ReservationResult:
        if not _is_positive_int(unit_id):
            raise ValidationError("Invalid unit id for lock")
        if not _is_positive_int(booking_id):
            raise ValidationError("Invalid booking id for lock")
        start = parse_calendar_date(from_date, "start")
        end = parse_calendar_date(to_date, "end")
        if end <= start:
            raise ValidationError("End date must be after start date")
        lock_source = normalize_source(source)

        async with self.store.transaction() as db:
            existing = await self._find_lock_for_booking(db, booking_id)
            await self._ensure_free(db, unit_id, start, end, booking_id, existing)

            if existing is not None:
                before = existing.as_audit_dict()
                if (
                    existing.unit_id == unit_id
                    and existing.start_date == start
                    and existing.end_date == end
                ):
                    return ReservationResult(lock_id=existing.id, created=False, updated=False)

                existing.unit_id = unit_id
                existing.start_date = start
                existing.end_date = end
                existing.lock_source = lock_source
                await db.flush()
                result = ReservationResult(lock_id=existing.id, created=False, updated=True)
            else:
                before = None
                lock = UnitLock(
                    unit_id=unit_id,
                    start_date=start,
                    end_date=end,
                    lock_source=lock_source,
                    lock_owner_booking_id=booking_id,
                    reason="HARD_LOCK",
                    created_by=actor_id,
                )
                db.add(lock)
                await db.flush()
                result = ReservationResult(lock_id=lock.id, created=True, updated=False)

            after = {
                "unit_id": unit_id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "booking_id": booking_id,
                "source": lock_source,
            }
            action = "create" if result.created else "update"
            await self._audit(db, actor_id, result.lock_id, action, before, after)

        self._notify(
            unit_id,
            f"lock.{action}",
            {
                "booking_id": booking_id,
                "start_date": after["start_date"],
                "end_date": after["end_date"],
                "source": lock_source,
                "updated": result.updated,
            },
        )
        return result

    async def release_slot(self, booking_id: int, actor_id: int | None = None) -> bool:
        """Remove the lock owned by a booking. Returns False when none existed."""
        if not _is_positive_int(booking_id):
            raise ValidationError("Invalid booking id for lock")

        async with self.store.transaction() as db:
            existing = await self._find_lock_for_booking(db, booking_id)
            if existing is None:
                return False
            lock_id = existing.id
            unit_id = existing.unit_id
            before = existing.as_audit_dict()
            await db.delete(existing)
            await db.flush()
            await self._audit(db, actor_id, lock_id, "delete", before, None)

        self._notify(
            unit_id,
            "lock.release",
            {
                "booking_id": booking_id,
                "start_date": before["start_date"],
                "end_date": before["end_date"],
            },
        )
        return True

    # ── Checks ────────────────────────────────────────────────────────────

    async def _find_lock_for_booking(self, db: AsyncSession, booking_id: int) -> UnitLock | None:
        stmt = (
            select(UnitLock)
            .where(UnitLock.lock_owner_booking_id == booking_id)
            .limit(1)
            .with_for_update()
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def _ensure_free(
        self,
        db: AsyncSession,
        unit_id: int,
        start: date,
        end: date,
        booking_id: int,
        existing: UnitLock | None,
    ) -> None:
        booking_stmt = (
            select(Booking.id)
            .where(
                Booking.unit_id == unit_id,
                Booking.id != booking_id,
                Booking.status.in_(BLOCKING_STATUSES),
                Booking.checkin < end,
                Booking.checkout > start,
            )
            .limit(1)
        )
        conflicting_booking = (await db.execute(booking_stmt)).scalar_one_or_none()
        if conflicting_booking is not None:
            raise ConflictError(
                "Dates unavailable for booking",
                {"unit_id": unit_id, "booking_id": conflicting_booking},
            )

        lock_stmt = (
            select(UnitLock.id)
            .outerjoin(Booking, Booking.id == UnitLock.lock_owner_booking_id)
            .where(
                UnitLock.unit_id == unit_id,
                UnitLock.end_date > start,
                UnitLock.start_date < end,
                or_(Booking.id.is_(None), Booking.status != BOOKING_CANCELLED),
            )
            .limit(1)
        )
        if existing is not None:
            lock_stmt = lock_stmt.where(UnitLock.id != existing.id)
        conflicting_lock = (await db.execute(lock_stmt)).scalar_one_or_none()
        if conflicting_lock is not None:
            raise ConflictError(
                "Interval already locked",
                {"unit_id": unit_id, "lock_id": conflicting_lock},
            )

        legacy_stmt = (
            select(LegacyBlock.id)
            .where(
                and_(
                    LegacyBlock.unit_id == unit_id,
                    LegacyBlock.end_date > start,
                    LegacyBlock.start_date < end,
                )
            )
            .limit(1)
        )
        if (await db.execute(legacy_stmt)).scalar_one_or_none() is not None:
            raise ConflictError("Interval unavailable (existing block)", {"unit_id": unit_id})

    # ── Side effects ──────────────────────────────────────────────────────

    async def _audit(
        self,
        db: AsyncSession,
        actor_id: int | None,
        lock_id: int,
        action: str,
        before: dict | None,
        after: dict | None,
    ) -> None:
        """Write the audit row in a savepoint so a failure never undoes the lock."""
        if self.audit is None:
            return
        try:
            async with db.begin_nested():
                await self.audit(db, actor_id, "unit_lock", lock_id, action, before, after)
        except Exception as exc:
            logger.warning("Failed to record audit entry for lock %s: %s", lock_id, exc)

    def _notify(self, unit_id: int, update_type: str, payload: dict) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.push_update(unit_id, update_type, payload)
        except Exception as exc:
            logger.warning("Failed to queue channel update for unit %s: %s", unit_id, exc)
