"""Durable outbound queue of coalesced per-unit channel updates."""

from __future__ import annotations

from sqlalchemy import Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntIDMixin, TimestampMixin

QUEUE_PENDING = "pending"
QUEUE_PROCESSING = "processing"
QUEUE_PROCESSED = "processed"
QUEUE_FAILED = "failed"


class SyncQueueEntry(Base, IntIDMixin, TimestampMixin):
    """Queue item holding one or more updates for a unit."""

    __tablename__ = "channel_sync_queue"

    unit_id: Mapped[int] = mapped_column(Integer, index=True)
    type: Mapped[str] = mapped_column(String(60))  # update type, or "batch"
    payload: Mapped[dict | None] = mapped_column(JSON, default=None)
    status: Mapped[str] = mapped_column(
        String(20), default=QUEUE_PENDING, index=True
    )  # pending/processing/processed/failed
    last_error: Mapped[str | None] = mapped_column(Text, default=None)

    @property
    def updates(self) -> list[dict]:
        return list((self.payload or {}).get("updates") or [])

    def __repr__(self) -> str:
        return f"<SyncQueueEntry #{self.id} unit={self.unit_id} {self.type} {self.status}>"
