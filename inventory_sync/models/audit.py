"""Audit trail of changes made by the inventory services."""

from __future__ import annotations

from sqlalchemy import Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, IntIDMixin, TimestampMixin


class AuditLog(Base, IntIDMixin, TimestampMixin):
    __tablename__ = "audit_log"

    actor_id: Mapped[int | None] = mapped_column(Integer, default=None, nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), index=True)  # unit_lock, booking, ...
    entity_id: Mapped[int] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String(30))  # create/update/delete
    before: Mapped[dict | None] = mapped_column(JSON, default=None)
    after: Mapped[dict | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_type}#{self.entity_id}>"
