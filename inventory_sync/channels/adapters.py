"""Concrete channel adapters."""

from __future__ import annotations

from .base import ChannelAdapter, ChannelKind


class AirbnbAdapter(ChannelAdapter):
    kind = ChannelKind.AIRBNB


class BookingAdapter(ChannelAdapter):
    kind = ChannelKind.BOOKING


class ExpediaAdapter(ChannelAdapter):
    kind = ChannelKind.EXPEDIA
