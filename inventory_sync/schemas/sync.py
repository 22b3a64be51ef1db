"""Pydantic models for the lock, sync and integration API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class LockReserve(BaseModel):
    unit_id: int
    from_date: str
    to_date: str
    booking_id: int
    actor_id: int | None = None
    source: str = "SYSTEM"


class UpdatePush(BaseModel):
    unit_id: Any
    type: str | None = None
    payload: dict | None = None


class FlushRequest(BaseModel):
    limit: int = 20
    force_debounce: bool = False


class IntegrationUpdate(BaseModel):
    is_active: bool | None = None
    auto_enabled: bool | None = None
    auto_url: str | None = None
    auto_format: str | None = None
    push_url: str | None = None
    default_status: str | None = None  # CONFIRMED/PENDING
    username: str | None = None
    password: str | None = None
    retain_password: bool | None = None
    signing_secret: str | None = None
