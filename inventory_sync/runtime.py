"""Wiring of the store, guard, dispatcher and worker for one process."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .channels.base import HttpClientFactory
from .channels.registry import build_adapters
from .database import TransactionalStore
from .services import audit_svc
from .services.dispatcher import SyncDispatcher
from .services.import_svc import ReservationImporter, WebhookImporter
from .services.overbooking_guard import OverbookingGuard
from .worker import FlushWorker


@dataclass
class Runtime:
    store: TransactionalStore
    guard: OverbookingGuard
    dispatcher: SyncDispatcher
    worker: FlushWorker


def build_runtime(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    importer: ReservationImporter | None = None,
    debounce_seconds: float | None = None,
    http_client_factory: HttpClientFactory | None = None,
) -> Runtime:
    store = TransactionalStore(session_factory)
    dispatcher = SyncDispatcher(
        session_factory,
        importer=importer or WebhookImporter(session_factory),
        adapters=build_adapters(http_client_factory),
        debounce_seconds=debounce_seconds,
    )
    guard = OverbookingGuard(store, audit=audit_svc.add_change, notifier=dispatcher)
    dispatcher.guard = guard
    return Runtime(store=store, guard=guard, dispatcher=dispatcher, worker=FlushWorker(dispatcher))
