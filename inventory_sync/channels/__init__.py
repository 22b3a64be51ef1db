"""Sales channel adapters."""

from .base import ChannelAdapter, ChannelKind, ConnectionCheck
from .registry import ADAPTER_CLASSES, build_adapters, parse_channel_kind, resolve_adapter

__all__ = [
    "ChannelAdapter",
    "ChannelKind",
    "ConnectionCheck",
    "ADAPTER_CLASSES",
    "build_adapters",
    "parse_channel_kind",
    "resolve_adapter",
]
