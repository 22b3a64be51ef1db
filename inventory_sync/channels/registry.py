"""Closed registry mapping each channel kind to its adapter."""

from __future__ import annotations

from typing import Mapping

from ..errors import ValidationError
from .adapters import AirbnbAdapter, BookingAdapter, ExpediaAdapter
from .base import ChannelAdapter, ChannelKind, HttpClientFactory

ADAPTER_CLASSES: dict[ChannelKind, type[ChannelAdapter]] = {
    ChannelKind.AIRBNB: AirbnbAdapter,
    ChannelKind.BOOKING: BookingAdapter,
    ChannelKind.EXPEDIA: ExpediaAdapter,
}


def parse_channel_kind(channel_key: str | None) -> ChannelKind:
    key = str(channel_key or "").strip()
    if not key:
        raise ValidationError("Channel is required")
    try:
        return ChannelKind(key)
    except ValueError:
        raise ValidationError(f"Unsupported channel: {key}") from None


def build_adapters(http_client_factory: HttpClientFactory | None = None) -> dict[ChannelKind, ChannelAdapter]:
    return {
        kind: adapter_cls(http_client_factory=http_client_factory)
        for kind, adapter_cls in ADAPTER_CLASSES.items()
    }


def resolve_adapter(adapters: Mapping[ChannelKind, ChannelAdapter], channel_key: str | None) -> ChannelAdapter:
    """Adapter for a channel key, or ValidationError when none is registered."""
    kind = parse_channel_kind(channel_key)
    adapter = adapters.get(kind)
    if adapter is None:
        raise ValidationError(f"Unsupported channel: {kind.value}")
    return adapter
