"""FastAPI application factory for inventory sync."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import async_session_factory
from .runtime import build_runtime
from .services import integration_svc


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev)
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        await integration_svc.ensure_default_integrations(db)
        if settings.migrate_legacy_secrets_on_startup:
            await integration_svc.migrate_legacy_secrets(db)

    runtime = build_runtime(async_session_factory)
    app.state.runtime = runtime
    runtime.worker.start()
    yield
    await runtime.dispatcher.flush_pending_debounce()
    await runtime.worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import (  # noqa: E402
    health,
    integrations,
    locks,
    sync,
    webhooks,
)

app.include_router(webhooks.router)
app.include_router(locks.router)
app.include_router(sync.router)
app.include_router(integrations.router)
app.include_router(health.router)
