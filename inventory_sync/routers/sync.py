"""Outbound sync API: queue updates, flush, inspect."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..runtime import Runtime
from ..schemas.sync import FlushRequest, UpdatePush
from ..security import require_admin_api_key
from ..services import sync_queue_svc
from .deps import get_runtime

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(require_admin_api_key)])


@router.post("/updates", status_code=202)
async def push_update(
    data: UpdatePush,
    runtime: Runtime = Depends(get_runtime),
):
    accepted = runtime.dispatcher.push_update(data.unit_id, data.type, data.payload)
    return {"accepted": accepted}


@router.post("/flush")
async def flush_queue(
    data: FlushRequest,
    runtime: Runtime = Depends(get_runtime),
):
    fired = 0
    if data.force_debounce:
        fired = await runtime.dispatcher.flush_pending_debounce()
    result = await runtime.dispatcher.flush_queue(limit=data.limit)
    return {
        "debounce_flushed": fired,
        "processed": [{"id": o.id, "dispatches": o.dispatches} for o in result.processed],
        "failed": [{"id": o.id, "dispatches": o.dispatches, "errors": o.errors} for o in result.failed],
        "remaining": result.remaining,
    }


@router.get("/queue")
async def list_queue(
    status: str | None = None,
    unit_id: int | None = None,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
):
    entries = await sync_queue_svc.list_entries(db, status=status, unit_id=unit_id, limit=limit)
    return [
        {
            "id": e.id,
            "unit_id": e.unit_id,
            "type": e.type,
            "status": e.status,
            "payload": e.payload,
            "last_error": e.last_error,
        }
        for e in entries
    ]


@router.get("/outbound")
async def outbound_log(runtime: Runtime = Depends(get_runtime)):
    return runtime.dispatcher.outbound_log()
