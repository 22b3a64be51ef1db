"""Sync queue service for durable outbound channel notifications."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.sync_queue import (
    QUEUE_FAILED,
    QUEUE_PENDING,
    QUEUE_PROCESSED,
    QUEUE_PROCESSING,
    SyncQueueEntry,
)


async def enqueue_entry(
    db: AsyncSession,
    unit_id: int,
    entry_type: str,
    payload: dict,
) -> SyncQueueEntry:
    """Create and persist a pending queue entry."""
    entry = SyncQueueEntry(
        unit_id=unit_id,
        type=entry_type,
        payload=payload,
        status=QUEUE_PENDING,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def get_entry(db: AsyncSession, entry_id: int) -> SyncQueueEntry | None:
    result = await db.execute(select(SyncQueueEntry).where(SyncQueueEntry.id == entry_id))
    return result.scalar_one_or_none()


async def list_pending(db: AsyncSession, limit: int) -> list[SyncQueueEntry]:
    """Pending entries in creation order."""
    stmt = (
        select(SyncQueueEntry)
        .where(SyncQueueEntry.status == QUEUE_PENDING)
        .order_by(SyncQueueEntry.id.asc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def reclaim_stale(db: AsyncSession, older_than: timedelta) -> int:
    """Return entries stuck in processing since before the cutoff to pending."""
    cutoff = datetime.now(timezone.utc) - older_than
    stmt = (
        update(SyncQueueEntry)
        .where(SyncQueueEntry.status == QUEUE_PROCESSING, SyncQueueEntry.updated_at < cutoff)
        .values(status=QUEUE_PENDING)
    )
    result = await db.execute(stmt)
    await db.commit()
    return int(result.rowcount or 0)


async def count_pending(db: AsyncSession) -> int:
    stmt = select(func.count()).select_from(SyncQueueEntry).where(
        SyncQueueEntry.status == QUEUE_PENDING
    )
    result = await db.execute(stmt)
    return int(result.scalar_one())


async def list_entries(
    db: AsyncSession,
    *,
    status: str | None = None,
    unit_id: int | None = None,
    limit: int = 50,
) -> list[SyncQueueEntry]:
    stmt = select(SyncQueueEntry)
    if status:
        stmt = stmt.where(SyncQueueEntry.status == status)
    if unit_id is not None:
        stmt = stmt.where(SyncQueueEntry.unit_id == unit_id)
    stmt = stmt.order_by(SyncQueueEntry.id.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def mark_processing(db: AsyncSession, entry: SyncQueueEntry) -> None:
    entry.status = QUEUE_PROCESSING
    entry.last_error = None
    await db.commit()


async def mark_processed(db: AsyncSession, entry: SyncQueueEntry, dispatch_meta: dict) -> None:
    """Mark processed, merging per-channel dispatch metadata into the payload."""
    entry.payload = {**(entry.payload or {}), **dispatch_meta}
    entry.status = QUEUE_PROCESSED
    entry.last_error = None
    await db.commit()


async def mark_failed(
    db: AsyncSession,
    entry: SyncQueueEntry,
    error: str,
    dispatch_meta: dict | None = None,
) -> None:
    if dispatch_meta:
        entry.payload = {**(entry.payload or {}), **dispatch_meta}
    entry.status = QUEUE_FAILED
    entry.last_error = error
    await db.commit()
