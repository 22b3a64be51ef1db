"""Channel integration configuration and last-sync status."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntIDMixin, TimestampMixin


class ChannelIntegration(Base, IntIDMixin, TimestampMixin):
    """One row per sales channel."""

    __tablename__ = "channel_integrations"

    channel_key: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    channel_name: Mapped[str] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    settings: Mapped[dict | None] = mapped_column(JSON, default=None)
    credentials: Mapped[dict | None] = mapped_column(JSON, default=None)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None, nullable=True
    )
    last_status: Mapped[str | None] = mapped_column(String(20), default=None)
    last_error: Mapped[str | None] = mapped_column(Text, default=None)
    last_summary: Mapped[dict | None] = mapped_column(JSON, default=None)
    updated_by: Mapped[int | None] = mapped_column(Integer, default=None, nullable=True)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<ChannelIntegration {self.channel_key} {state}>"
