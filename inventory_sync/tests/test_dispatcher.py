"""Tests for the outbound side of the sync dispatcher."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy import update

from inventory_sync.channels import ChannelKind
from inventory_sync.channels.adapters import AirbnbAdapter
from inventory_sync.models.sync_queue import (
    QUEUE_FAILED,
    QUEUE_PENDING,
    QUEUE_PROCESSED,
    QUEUE_PROCESSING,
    SyncQueueEntry,
)
from inventory_sync.runtime import build_runtime
from inventory_sync.security import canonical_json, compute_signature
from inventory_sync.services import sync_queue_svc


async def _enqueue(session_factory, unit_id: int, entry_type: str = "rate.update", payload: dict | None = None):
    async with session_factory() as session:
        entry = await sync_queue_svc.enqueue_entry(
            session, unit_id, entry_type, payload or {"unit_id": unit_id, "updates": []}
        )
        return entry.id


async def _entry(session_factory, entry_id: int):
    async with session_factory() as session:
        return await sync_queue_svc.get_entry(session, entry_id)


class FlakyAirbnbAdapter(AirbnbAdapter):
    """Fails every push for unit 1."""

    async def push_update(self, update, integration, record_outbound):
        if update["unit_id"] == 1:
            raise RuntimeError("channel rejected update")
        return await super().push_update(update, integration, record_outbound)


class TestBatchPersistence:
    @pytest.mark.asyncio
    async def test_burst_becomes_one_queue_entry(self, runtime, session_factory):
        dispatcher = runtime.dispatcher
        assert dispatcher.push_update(11, "rate.update", {"rate": 90}) is True
        assert dispatcher.push_update(11, "availability.update", {"open": False}) is True
        assert dispatcher.push_update("bogus", "rate.update") is False

        assert await dispatcher.flush_pending_debounce() == 1

        async with session_factory() as session:
            entries = await sync_queue_svc.list_entries(session)
        assert len(entries) == 1
        assert entries[0].unit_id == 11
        assert entries[0].type == "batch"
        assert entries[0].status == QUEUE_PENDING
        assert [u["type"] for u in entries[0].updates] == ["rate.update", "availability.update"]

    @pytest.mark.asyncio
    async def test_guard_changes_reach_the_queue(self, runtime, session_factory):
        await runtime.guard.reserve_slot(12, "2024-06-01", "2024-06-05", 1)
        await runtime.dispatcher.flush_pending_debounce()

        async with session_factory() as session:
            entries = await sync_queue_svc.list_entries(session, unit_id=12)
        assert len(entries) == 1
        assert entries[0].type == "lock.create"


class TestFlushQueue:
    @pytest.mark.asyncio
    async def test_signs_and_sends_to_auto_sync_channels(
        self, runtime, session_factory, configure_channel
    ):
        await configure_channel("airbnb", credentials={"signing_secret": "s3cret"})
        await configure_channel("booking")
        await configure_channel("expedia", is_active=False, credentials={"signing_secret": "x"})
        entry_id = await _enqueue(session_factory, 21)

        result = await runtime.dispatcher.flush_queue(limit=10)

        assert [o.id for o in result.processed] == [entry_id]
        assert result.failed == []
        assert result.remaining == 0
        dispatched = {d["channel"]: d for d in result.processed[0].dispatches}
        assert set(dispatched) == {"airbnb", "booking"}
        assert dispatched["booking"]["signature"] is None

        log = runtime.dispatcher.outbound_log()
        assert {item["channel"] for item in log} == {"airbnb", "booking"}
        airbnb_update = next(item["update"] for item in log if item["channel"] == "airbnb")
        unsigned = {k: v for k, v in airbnb_update.items() if k != "signature"}
        assert set(unsigned) == {"channel", "unit_id", "type", "payload", "dispatched_at"}
        assert airbnb_update["signature"] == compute_signature("s3cret", canonical_json(unsigned))
        assert dispatched["airbnb"]["signature"] == airbnb_update["signature"]

        entry = await _entry(session_factory, entry_id)
        assert entry.status == QUEUE_PROCESSED
        assert entry.last_error is None
        assert len(entry.payload["dispatches"]) == 2
        assert "last_dispatch_at" in entry.payload

    @pytest.mark.asyncio
    async def test_disabled_auto_sync_is_skipped(self, runtime, session_factory, configure_channel):
        await configure_channel("airbnb", settings_data={"auto_enabled": False})
        await configure_channel("booking_com")
        await _enqueue(session_factory, 22)

        result = await runtime.dispatcher.flush_queue()

        assert len(result.processed) == 1
        assert result.processed[0].dispatches == []
        assert runtime.dispatcher.outbound_log() == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(
        self, runtime, session_factory, configure_channel
    ):
        await configure_channel("airbnb")
        await configure_channel("expedia")
        runtime.dispatcher.adapters[ChannelKind.AIRBNB] = FlakyAirbnbAdapter()
        failing_id = await _enqueue(session_factory, 1)
        ok_id = await _enqueue(session_factory, 2)

        result = await runtime.dispatcher.flush_queue()

        assert [o.id for o in result.failed] == [failing_id]
        assert [o.id for o in result.processed] == [ok_id]
        assert result.failed[0].errors == [{"channel": "airbnb", "error": "channel rejected update"}]
        assert [d["channel"] for d in result.failed[0].dispatches] == ["expedia"]

        failed = await _entry(session_factory, failing_id)
        assert failed.status == QUEUE_FAILED
        assert "airbnb: channel rejected update" in failed.last_error
        assert (await _entry(session_factory, ok_id)).status == QUEUE_PROCESSED

    @pytest.mark.asyncio
    async def test_limit_and_remaining(self, runtime, session_factory):
        ids = [await _enqueue(session_factory, unit) for unit in (31, 32, 33)]

        first = await runtime.dispatcher.flush_queue(limit=2)
        assert [o.id for o in first.processed] == ids[:2]
        assert first.remaining == 1

        second = await runtime.dispatcher.flush_queue(limit=0)
        assert [o.id for o in second.processed] == ids[2:]
        assert second.remaining == 0

    @pytest.mark.asyncio
    async def test_stale_processing_entries_are_flushed_again(self, runtime, session_factory):
        stale_id = await _enqueue(session_factory, 34)
        fresh_id = await _enqueue(session_factory, 35)
        async with session_factory() as session:
            await session.execute(
                update(SyncQueueEntry)
                .where(SyncQueueEntry.id == stale_id)
                .values(status=QUEUE_PROCESSING, updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
            )
            await session.commit()
            await sync_queue_svc.mark_processing(session, await session.get(SyncQueueEntry, fresh_id))

        result = await runtime.dispatcher.flush_queue()

        assert [o.id for o in result.processed] == [stale_id]
        assert (await _entry(session_factory, stale_id)).status == QUEUE_PROCESSED
        assert (await _entry(session_factory, fresh_id)).status == QUEUE_PROCESSING

    @pytest.mark.asyncio
    async def test_pushes_to_configured_url(self, session_factory, configure_channel):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        runtime = build_runtime(
            session_factory,
            debounce_seconds=60,
            http_client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        await configure_channel(
            "airbnb",
            settings_data={"push_url": "https://channel.test/push"},
            credentials={"signing_secret": "s3cret"},
        )
        await _enqueue(session_factory, 41)

        result = await runtime.dispatcher.flush_queue()

        assert len(result.processed) == 1
        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert str(requests[0].url) == "https://channel.test/push"
        assert body["unit_id"] == 41
        assert requests[0].headers["X-Channel-Signature"] == body["signature"]

    @pytest.mark.asyncio
    async def test_channel_error_response_fails_entry(self, session_factory, configure_channel):
        runtime = build_runtime(
            session_factory,
            debounce_seconds=60,
            http_client_factory=lambda: httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(503))
            ),
        )
        await configure_channel("expedia", settings_data={"push_url": "https://channel.test/push"})
        entry_id = await _enqueue(session_factory, 42)

        result = await runtime.dispatcher.flush_queue()

        assert [o.id for o in result.failed] == [entry_id]
        assert (await _entry(session_factory, entry_id)).status == QUEUE_FAILED
