"""Inventory sync database models."""

from .base import Base
from .booking import Booking
from .lock import UnitLock, LegacyBlock
from .sync_queue import SyncQueueEntry
from .integration import ChannelIntegration
from .audit import AuditLog

__all__ = [
    "Base",
    "Booking",
    "UnitLock",
    "LegacyBlock",
    "SyncQueueEntry",
    "ChannelIntegration",
    "AuditLog",
]
