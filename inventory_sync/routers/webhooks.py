"""Inbound channel webhooks."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request

from ..errors import InventoryError, WebhookSignatureError
from ..runtime import Runtime
from .deps import get_runtime

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{channel_key}")
async def receive_channel_webhook(
    channel_key: str,
    request: Request,
    runtime: Runtime = Depends(get_runtime),
):
    """Authenticate, import and lock reservations delivered by a channel."""
    raw_body = await request.body()
    payload: dict = {}
    if raw_body:
        try:
            parsed = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(status_code=422, detail="Invalid JSON body")
        if isinstance(parsed, dict):
            payload = parsed

    try:
        result = await runtime.dispatcher.ingest(
            channel_key,
            payload,
            headers=dict(request.headers),
            raw_body=raw_body.decode("utf-8"),
        )
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except InventoryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    return {
        "status": result.import_result.status,
        "channel": result.channel_key,
        "summary": result.import_result.summary(),
        "locked": result.locked,
        "unlocked": result.unlocked,
    }


@router.get("/{channel_key}/test")
async def test_channel_connection(
    channel_key: str,
    runtime: Runtime = Depends(get_runtime),
):
    try:
        check = await runtime.dispatcher.test_connection(channel_key)
    except InventoryError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return {"channel": channel_key, "ok": check.ok, "details": check.details}
