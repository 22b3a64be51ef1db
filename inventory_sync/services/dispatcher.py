"""Sync dispatcher: outbound batching and flush, inbound webhook gateway."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..channels.base import ChannelAdapter, ChannelKind, ConnectionCheck
from ..channels.registry import build_adapters, resolve_adapter
from ..config import settings
from ..errors import InventoryError, ValidationError
from ..models.sync_queue import SyncQueueEntry
from ..security import resolve_secret, sign_message, verify_signature
from . import integration_svc, sync_queue_svc
from .debounce import UpdateBatcher
from .import_svc import ImportResult, ReservationImporter
from .overbooking_guard import OverbookingGuard

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_LIMIT = 20


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class EntryOutcome:
    id: int
    dispatches: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)


@dataclass
class FlushResult:
    processed: list[EntryOutcome] = field(default_factory=list)
    failed: list[EntryOutcome] = field(default_factory=list)
    remaining: int = 0


@dataclass
class IngestResult:
    channel_key: str
    import_result: ImportResult
    locked: list[int] = field(default_factory=list)
    unlocked: list[dict] = field(default_factory=list)


class SyncDispatcher:
    """Propagates unit changes to channels and ingests channel reservations."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        importer: ReservationImporter,
        guard: OverbookingGuard | None = None,
        adapters: Mapping[ChannelKind, ChannelAdapter] | None = None,
        debounce_seconds: float | None = None,
        outbound_log_limit: int | None = None,
        processing_timeout_seconds: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.importer = importer
        self.guard = guard
        self.adapters: dict[ChannelKind, ChannelAdapter] = dict(adapters or build_adapters())
        self.batcher = UpdateBatcher(
            self._persist_batch,
            settings.debounce_seconds if debounce_seconds is None else debounce_seconds,
        )
        self._persist_lock = asyncio.Lock()
        self.processing_timeout = timedelta(
            seconds=settings.processing_timeout_seconds
            if processing_timeout_seconds is None
            else processing_timeout_seconds
        )
        self._outbound_log: deque[dict] = deque(
            maxlen=outbound_log_limit or settings.outbound_log_limit
        )

    # ── Outbound ──────────────────────────────────────────────────────────

    def push_update(self, unit_id: Any, update_type: str | None = None, payload: Any = None) -> bool:
        """Best-effort: invalid unit ids are dropped without raising."""
        return self.batcher.push_update(unit_id, update_type, payload)

    async def flush_pending_debounce(self) -> int:
        return await self.batcher.flush_pending_debounce()

    async def _persist_batch(self, unit_id: int, entry_type: str, payload: dict) -> SyncQueueEntry:
        async with self._persist_lock, self._session_factory() as db:
            entry = await sync_queue_svc.enqueue_entry(db, unit_id, entry_type, payload)
        logger.debug("Queued %s update for unit %s as entry %s", entry_type, unit_id, entry.id)
        return entry

    def record_outbound(self, channel: str, update: dict) -> None:
        self._outbound_log.append({"channel": channel, "update": update, "at": _now_iso()})

    def outbound_log(self) -> list[dict]:
        return list(self._outbound_log)

    async def flush_queue(self, limit: int = DEFAULT_FLUSH_LIMIT) -> FlushResult:
        """Send up to ``limit`` pending entries to every auto-sync channel."""
        capped = limit if isinstance(limit, int) and not isinstance(limit, bool) and limit > 0 else DEFAULT_FLUSH_LIMIT
        result = FlushResult()

        async with self._session_factory() as db:
            reclaimed = await sync_queue_svc.reclaim_stale(db, self.processing_timeout)
            if reclaimed:
                logger.info("Returned %d stale processing entries to pending", reclaimed)
            pending_ids = [entry.id for entry in await sync_queue_svc.list_pending(db, capped)]
            for entry_id in pending_ids:
                entry = await db.get(SyncQueueEntry, entry_id)
                if entry is None:
                    continue
                try:
                    await sync_queue_svc.mark_processing(db, entry)
                    outcome = await self._dispatch_entry(db, entry)
                except Exception as exc:
                    await db.rollback()
                    logger.warning("Channel update %s failed: %s", entry_id, exc)
                    failed_entry = await db.get(SyncQueueEntry, entry_id)
                    if failed_entry is not None:
                        await sync_queue_svc.mark_failed(db, failed_entry, str(exc))
                    result.failed.append(EntryOutcome(id=entry_id, errors=[{"error": str(exc)}]))
                    continue

                meta = {"last_dispatch_at": _now_iso(), "dispatches": outcome.dispatches}
                if outcome.errors:
                    error = "; ".join(f"{item['channel']}: {item['error']}" for item in outcome.errors)
                    logger.warning("Channel update %s failed: %s", entry_id, error)
                    await sync_queue_svc.mark_failed(db, entry, error, meta)
                    result.failed.append(outcome)
                else:
                    await sync_queue_svc.mark_processed(db, entry, meta)
                    result.processed.append(outcome)

            result.remaining = await sync_queue_svc.count_pending(db)
        return result

    async def _dispatch_entry(self, db: AsyncSession, entry: SyncQueueEntry) -> EntryOutcome:
        outcome = EntryOutcome(id=entry.id)
        base_payload = dict(entry.payload or {})

        for integration in await integration_svc.list_integrations(db):
            if not integration_svc.supports_auto_sync(integration):
                continue
            try:
                adapter = self.adapters[ChannelKind(integration.channel_key)]
            except (ValueError, KeyError):
                continue

            message = {
                "channel": integration.channel_key,
                "unit_id": entry.unit_id,
                "type": entry.type,
                "payload": base_payload,
                "dispatched_at": _now_iso(),
            }
            signature = sign_message(resolve_secret(integration), message)
            update = {**message, "signature": signature}
            try:
                await adapter.push_update(update, integration, self.record_outbound)
            except Exception as exc:
                outcome.errors.append({"channel": integration.channel_key, "error": str(exc) or type(exc).__name__})
                continue
            outcome.dispatches.append(
                {
                    "channel": integration.channel_key,
                    "signature": signature,
                    "dispatched_at": message["dispatched_at"],
                }
            )
        return outcome

    # ── Inbound ───────────────────────────────────────────────────────────

    async def ingest(
        self,
        channel_key: str,
        payload: Any,
        headers: Mapping[str, str] | None = None,
        raw_body: str | bytes | None = None,
    ) -> IngestResult:
        """Authenticate a channel delivery, import it and lock every new stay."""
        adapter = resolve_adapter(self.adapters, channel_key)

        async with self._session_factory() as db:
            integration = await integration_svc.get_integration(db, adapter.key)
        if integration is None:
            raise ValidationError(f"Unknown channel: {adapter.key}")

        secret = resolve_secret(integration)
        if secret:
            verify_signature(secret, headers, payload, raw_body)

        import_result = await adapter.ingest(
            self.importer, integration, payload, settings.webhook_source_label
        )
        result = IngestResult(channel_key=adapter.key, import_result=import_result)

        for item in import_result.inserted:
            if self.guard is None:
                break
            try:
                await self.guard.reserve_slot(
                    item.unit_id,
                    item.checkin,
                    item.checkout,
                    item.booking_id,
                    source="OTA",
                )
            except Exception as exc:
                reason = exc.message if isinstance(exc, InventoryError) else str(exc) or type(exc).__name__
                log = logger.warning if isinstance(exc, InventoryError) else logger.exception
                log(
                    "Could not lock unit %s for %s reservation %s: %s",
                    item.unit_id,
                    adapter.key,
                    item.booking_id,
                    reason,
                )
                result.unlocked.append(
                    {
                        "booking_id": item.booking_id,
                        "unit_id": item.unit_id,
                        "checkin": item.checkin.isoformat(),
                        "checkout": item.checkout.isoformat(),
                        "reason": reason,
                    }
                )
                continue
            result.locked.append(item.booking_id)

        summary = {**import_result.summary(), "locked": result.locked, "unlocked": result.unlocked}
        async with self._session_factory() as db:
            await integration_svc.record_sync_result(
                db,
                adapter.key,
                import_result.status,
                summary=summary,
                error="Imported reservations left unlocked" if result.unlocked else None,
            )
        return result

    async def test_connection(self, channel_key: str) -> ConnectionCheck:
        adapter = resolve_adapter(self.adapters, channel_key)
        async with self._session_factory() as db:
            integration = await integration_svc.get_integration(db, adapter.key)
        return await adapter.test_connection(integration, has_secret=bool(resolve_secret(integration)))
