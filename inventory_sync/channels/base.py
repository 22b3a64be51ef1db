"""Uniform adapter contract shared by every sales channel."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from ..config import settings
from ..models.integration import ChannelIntegration
from ..services.import_svc import ImportResult, ReservationImporter
from ..services.integration_svc import default_import_status

logger = logging.getLogger(__name__)

RecordOutbound = Callable[[str, dict], None]
HttpClientFactory = Callable[[], httpx.AsyncClient]


class ChannelKind(str, enum.Enum):
    AIRBNB = "airbnb"
    BOOKING = "booking"
    EXPEDIA = "expedia"


@dataclass
class ConnectionCheck:
    ok: bool
    details: dict[str, Any] = field(default_factory=dict)


def _default_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.push_timeout_seconds)


class ChannelAdapter:
    """Base adapter: import via the normalizer, push signed updates over HTTP."""

    kind: ChannelKind
    signature_header = "X-Channel-Signature"

    def __init__(self, http_client_factory: HttpClientFactory | None = None) -> None:
        self._http_client_factory = http_client_factory or _default_http_client

    @property
    def key(self) -> str:
        return self.kind.value

    async def ingest(
        self,
        importer: ReservationImporter,
        integration: ChannelIntegration,
        payload: Any,
        source_label: str,
    ) -> ImportResult:
        return await importer.import_from_webhook(
            channel_key=self.key,
            payload=payload,
            source_label=source_label,
            target_status=default_import_status(integration),
        )

    async def push_update(
        self,
        update: dict,
        integration: ChannelIntegration,
        record_outbound: RecordOutbound,
    ) -> dict:
        record_outbound(self.key, update)
        push_url = ((integration.settings or {}).get("push_url") or "").strip()
        if not push_url:
            return {"ok": True, "delivered": False}

        headers = {"Content-Type": "application/json"}
        if update.get("signature"):
            headers[self.signature_header] = update["signature"]
        async with self._http_client_factory() as client:
            resp = await client.post(push_url, json=update, headers=headers)
            resp.raise_for_status()
        return {"ok": True, "delivered": True, "status_code": resp.status_code}

    async def test_connection(
        self,
        integration: ChannelIntegration | None,
        has_secret: bool = False,
    ) -> ConnectionCheck:
        if integration is None:
            return ConnectionCheck(ok=False, details={"error": "integration_not_configured"})
        settings_data = integration.settings or {}
        credentials = {k: v for k, v in (integration.credentials or {}).items() if v}
        has_url = bool(settings_data.get("push_url") or settings_data.get("auto_url"))
        has_credentials = bool(credentials)
        return ConnectionCheck(
            ok=has_url or has_credentials,
            details={
                "has_url": has_url,
                "has_credentials": has_credentials,
                "has_secret": has_secret,
                "active": bool(integration.is_active),
            },
        )
