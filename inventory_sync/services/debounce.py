"""Per-unit debounce accumulator for outbound channel updates.

Each unit moves through IDLE -> ACCUMULATING -> FLUSHING -> IDLE. The first
update for an idle unit opens a fixed debounce window; updates arriving
before it closes join the same batch. When the window closes the batch is
handed to the persist callback as a single queue entry. Updates arriving
while a batch is being persisted open a fresh window.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

BATCH_TYPE = "batch"
GENERIC_TYPE = "generic"

PersistBatch = Callable[[int, str, dict], Awaitable[Any]]


class BatchState(str, enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def coerce_unit_id(value: Any) -> int | None:
    """Positive integer unit id, or None when the value cannot be one."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


@dataclass
class UnitBatch:
    unit_id: int
    updates: list[dict] = field(default_factory=list)
    type: str = GENERIC_TYPE
    state: BatchState = BatchState.ACCUMULATING
    timer: asyncio.TimerHandle | None = None

    def add(self, update_type: str, payload: dict) -> None:
        self.updates.append({"type": update_type, "payload": payload, "received_at": _now_iso()})
        self.type = BATCH_TYPE if len(self.updates) > 1 else update_type

    def to_payload(self) -> dict:
        return {"unit_id": self.unit_id, "updates": list(self.updates), "enqueued_at": _now_iso()}


class UpdateBatcher:
    """Coalesces bursts of updates per unit into one persisted batch."""

    def __init__(self, persist: PersistBatch, debounce_seconds: float = 1.0) -> None:
        self._persist = persist
        self.debounce_seconds = max(float(debounce_seconds), 0.0)
        self._accumulating: dict[int, UnitBatch] = {}
        self._flushing: dict[int, UnitBatch] = {}
        self._inflight: set[asyncio.Task] = set()

    def push_update(self, unit_id: Any, update_type: str | None = None, payload: Any = None) -> bool:
        """Record an update. Returns False when the update was dropped."""
        normalized_id = coerce_unit_id(unit_id)
        if normalized_id is None:
            logger.debug("Dropping channel update with invalid unit id %r", unit_id)
            return False
        kind = str(update_type) if update_type else GENERIC_TYPE
        body = payload if isinstance(payload, dict) else {}

        batch = self._accumulating.get(normalized_id)
        if batch is None:
            batch = UnitBatch(unit_id=normalized_id)
            loop = asyncio.get_running_loop()
            batch.timer = loop.call_later(self.debounce_seconds, self._fire, normalized_id)
            self._accumulating[normalized_id] = batch
        batch.add(kind, body)
        return True

    def state(self, unit_id: int) -> BatchState:
        if unit_id in self._accumulating:
            return BatchState.ACCUMULATING
        if unit_id in self._flushing:
            return BatchState.FLUSHING
        return BatchState.IDLE

    def pending_units(self) -> list[int]:
        return sorted(self._accumulating)

    async def flush_pending_debounce(self) -> int:
        """Close every open window now and wait for all persists to finish."""
        fired = 0
        for unit_id in list(self._accumulating):
            batch = self._accumulating[unit_id]
            if batch.timer is not None:
                batch.timer.cancel()
            self._fire(unit_id)
            fired += 1
        if self._inflight:
            await asyncio.gather(*list(self._inflight))
        return fired

    def _fire(self, unit_id: int) -> None:
        batch = self._accumulating.pop(unit_id, None)
        if batch is None:
            return
        batch.timer = None
        batch.state = BatchState.FLUSHING
        self._flushing[unit_id] = batch
        task = asyncio.get_running_loop().create_task(
            self._flush(batch), name=f"channel-batch-{unit_id}"
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _flush(self, batch: UnitBatch) -> None:
        try:
            await self._persist(batch.unit_id, batch.type, batch.to_payload())
        except Exception:
            logger.exception("Failed to persist channel batch for unit %s", batch.unit_id)
        finally:
            batch.state = BatchState.IDLE
            if self._flushing.get(batch.unit_id) is batch:
                del self._flushing[batch.unit_id]
