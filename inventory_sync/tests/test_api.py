"""API tests for the inventory sync routes."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from inventory_sync.config import settings
from inventory_sync.security import compute_signature


def _webhook_body(ref: str = "AB-100") -> bytes:
    return json.dumps(
        {
            "reservations": [
                {
                    "unit_id": 15,
                    "checkin": "2024-09-01",
                    "checkout": "2024-09-03",
                    "external_ref": ref,
                    "guest_name": "Lee",
                }
            ]
        }
    ).encode("utf-8")


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200


class TestWebhookEndpoint:
    @pytest.mark.asyncio
    async def test_signed_delivery_imports_and_locks(self, client: AsyncClient, configure_channel):
        await configure_channel("airbnb", credentials={"signing_secret": "hook-secret"})
        body = _webhook_body()

        resp = await client.post(
            "/webhooks/airbnb",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-OTA-Signature": compute_signature("hook-secret", body),
            },
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "processed"
        assert data["channel"] == "airbnb"
        assert data["summary"]["inserted_count"] == 1
        assert len(data["locked"]) == 1
        assert data["unlocked"] == []

    @pytest.mark.asyncio
    async def test_unsigned_delivery_rejected_when_secret_configured(
        self, client: AsyncClient, configure_channel
    ):
        await configure_channel("airbnb", credentials={"signing_secret": "hook-secret"})

        resp = await client.post(
            "/webhooks/airbnb",
            content=_webhook_body(),
            headers={"Content-Type": "application/json"},
        )

        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_json(self, client: AsyncClient, configure_channel):
        await configure_channel("airbnb")
        resp = await client.post(
            "/webhooks/airbnb",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_channel(self, client: AsyncClient):
        resp = await client.post("/webhooks/vrbo", json={"reservations": []})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_connection_check(self, client: AsyncClient, configure_channel):
        await configure_channel(
            "expedia",
            settings_data={"push_url": "https://channel.test/push"},
            credentials={"signing_secret": "abc"},
        )

        resp = await client.get("/webhooks/expedia/test")

        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["details"]["has_secret"] is True
        assert data["details"]["active"] is True

    @pytest.mark.asyncio
    async def test_connection_check_unconfigured(self, client: AsyncClient):
        resp = await client.get("/webhooks/booking/test")
        assert resp.status_code == 200
        assert resp.json()["ok"] is False


class TestLocks:
    @pytest.mark.asyncio
    async def test_reserve_conflict_and_release(self, client: AsyncClient):
        created = await client.post(
            "/locks",
            json={"unit_id": 7, "from_date": "2024-06-01", "to_date": "2024-06-05", "booking_id": 1},
        )
        assert created.status_code == 200
        assert created.json()["created"] is True

        conflict = await client.post(
            "/locks",
            json={"unit_id": 7, "from_date": "2024-06-03", "to_date": "2024-06-08", "booking_id": 2},
        )
        assert conflict.status_code == 409
        assert conflict.json()["detail"]["message"] == "Interval already locked"

        released = await client.delete("/locks/booking/1")
        assert released.status_code == 200

        missing = await client.delete("/locks/booking/1")
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_reserve_validation_error(self, client: AsyncClient):
        resp = await client.post(
            "/locks",
            json={"unit_id": 7, "from_date": "2024-06-05", "to_date": "2024-06-01", "booking_id": 1},
        )
        assert resp.status_code == 400


class TestSync:
    @pytest.mark.asyncio
    async def test_push_flush_and_inspect(self, client: AsyncClient, configure_channel):
        await configure_channel("booking")

        accepted = await client.post("/sync/updates", json={"unit_id": 4, "type": "rate.update"})
        assert accepted.status_code == 202
        assert accepted.json() == {"accepted": True}

        dropped = await client.post("/sync/updates", json={"unit_id": "abc"})
        assert dropped.status_code == 202
        assert dropped.json() == {"accepted": False}

        flushed = await client.post("/sync/flush", json={"force_debounce": True})
        assert flushed.status_code == 200
        data = flushed.json()
        assert data["debounce_flushed"] == 1
        assert len(data["processed"]) == 1
        assert data["processed"][0]["dispatches"][0]["channel"] == "booking"
        assert data["remaining"] == 0

        queue = await client.get("/sync/queue", params={"status": "processed"})
        assert queue.status_code == 200
        assert [e["unit_id"] for e in queue.json()] == [4]

        outbound = await client.get("/sync/outbound")
        assert [item["channel"] for item in outbound.json()] == ["booking"]


class TestIntegrations:
    @pytest.mark.asyncio
    async def test_list_hides_secrets(self, client: AsyncClient, configure_channel):
        await configure_channel("airbnb", credentials={"signing_secret": "abc", "password": "pw"})

        resp = await client.get("/integrations")

        assert resp.status_code == 200
        by_key = {item["key"]: item for item in resp.json()}
        assert by_key["airbnb"]["has_secret"] is True
        assert by_key["expedia"]["has_secret"] is False
        assert "credentials" not in by_key["airbnb"]
        assert "abc" not in resp.text

    @pytest.mark.asyncio
    async def test_update_integration(self, client: AsyncClient):
        resp = await client.put(
            "/integrations/expedia",
            json={"is_active": True, "push_url": " https://channel.test/x ", "signing_secret": "s"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_active"] is True
        assert data["settings"]["push_url"] == "https://channel.test/x"
        assert data["has_secret"] is True

    @pytest.mark.asyncio
    async def test_update_unknown_integration(self, client: AsyncClient):
        resp = await client.put("/integrations/vrbo", json={"is_active": True})
        assert resp.status_code == 400


class TestAdminKey:
    @pytest.mark.asyncio
    async def test_admin_routes_require_key_when_configured(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(settings, "admin_api_key", "admin-secret")

        denied = await client.get("/integrations")
        assert denied.status_code == 401

        wrong = await client.get("/sync/queue", headers={"X-API-Key": "nope"})
        assert wrong.status_code == 401

        allowed = await client.get("/integrations", headers={"X-API-Key": "admin-secret"})
        assert allowed.status_code == 200

        bearer = await client.get("/sync/outbound", headers={"Authorization": "Bearer admin-secret"})
        assert bearer.status_code == 200

    @pytest.mark.asyncio
    async def test_webhooks_do_not_need_admin_key(
        self, client: AsyncClient, configure_channel, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(settings, "admin_api_key", "admin-secret")
        await configure_channel("airbnb")

        resp = await client.post(
            "/webhooks/airbnb",
            content=_webhook_body("AB-200"),
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200
