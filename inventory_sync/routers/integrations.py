"""Channel integration settings API."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..errors import InventoryError
from ..schemas.sync import IntegrationUpdate
from ..security import require_admin_api_key, resolve_secret
from ..services import integration_svc

router = APIRouter(
    prefix="/integrations",
    tags=["integrations"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.get("")
async def list_integrations(db: AsyncSession = Depends(get_db)):
    integrations = await integration_svc.list_integrations(db)
    return [
        asdict(integration_svc.describe_integration(i, has_secret=bool(resolve_secret(i))))
        for i in integrations
    ]


@router.put("/{channel_key}")
async def update_integration(
    channel_key: str,
    data: IntegrationUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        integration = await integration_svc.save_integration_settings(
            db, channel_key, data.model_dump(exclude_unset=True)
        )
    except InventoryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return asdict(
        integration_svc.describe_integration(integration, has_secret=bool(resolve_secret(integration)))
    )
