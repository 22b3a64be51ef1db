"""Lock API used by booking flows."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..errors import InventoryError
from ..runtime import Runtime
from ..schemas.sync import LockReserve
from ..security import require_admin_api_key
from .deps import get_runtime

router = APIRouter(prefix="/locks", tags=["locks"], dependencies=[Depends(require_admin_api_key)])


@router.post("")
async def reserve_slot(
    data: LockReserve,
    runtime: Runtime = Depends(get_runtime),
):
    try:
        result = await runtime.guard.reserve_slot(
            data.unit_id,
            data.from_date,
            data.to_date,
            data.booking_id,
            actor_id=data.actor_id,
            source=data.source,
        )
    except InventoryError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"message": exc.message, **(exc.details or {})},
        ) from exc
    return {"lock_id": result.lock_id, "created": result.created, "updated": result.updated}


@router.delete("/booking/{booking_id}")
async def release_slot(
    booking_id: int,
    actor_id: int | None = None,
    runtime: Runtime = Depends(get_runtime),
):
    try:
        released = await runtime.guard.release_slot(booking_id, actor_id=actor_id)
    except InventoryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    if not released:
        raise HTTPException(status_code=404, detail="Lock not found")
    return {"released": True, "booking_id": booking_id}
