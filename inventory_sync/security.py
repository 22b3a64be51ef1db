"""Signing helpers for channel pushes and webhook deliveries, plus admin key auth."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Mapping

from fastapi import HTTPException, Request

from .config import settings
from .errors import WebhookSignatureError

SIGNATURE_HEADERS = ("x-ota-signature", "x-channel-signature", "x-webhook-signature")

CANONICAL_SECRET_FIELD = "signing_secret"

# Field names older integrations stored the shared secret under.
LEGACY_SETTINGS_SECRET_FIELDS = ("webhookSecret", "webhookToken", "secret", "syncSecret")
LEGACY_CREDENTIAL_SECRET_FIELDS = (
    "webhookSecret",
    "webhookToken",
    "secret",
    "apiSecret",
    "signingSecret",
)


def canonical_json(data: Any) -> str:
    """Serialize with sorted keys and compact separators."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def compute_signature(secret: str, message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_message(secret: str | None, message: Mapping[str, Any]) -> str | None:
    """Sign an outbound message, or return None when the channel has no secret."""
    if not secret:
        return None
    return compute_signature(secret, canonical_json(dict(message)))


def _clean(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def find_legacy_secret(settings_data: Mapping | None, credentials: Mapping | None) -> str | None:
    """Return the first secret stored under a legacy alias."""
    for field in LEGACY_SETTINGS_SECRET_FIELDS:
        value = _clean((settings_data or {}).get(field))
        if value:
            return value
    for field in LEGACY_CREDENTIAL_SECRET_FIELDS:
        value = _clean((credentials or {}).get(field))
        if value:
            return value
    return None


def resolve_secret(integration) -> str | None:
    """Shared secret for a channel integration.

    Reads the canonical credentials field; rows not yet migrated fall back to
    the legacy aliases so a configured secret is never ignored.
    """
    if integration is None:
        return None
    credentials = integration.credentials or {}
    canonical = _clean(credentials.get(CANONICAL_SECRET_FIELD))
    if canonical:
        return canonical
    return find_legacy_secret(integration.settings, credentials)


def find_signature(headers: Mapping[str, str] | None, payload: Any) -> str | None:
    """Locate a provided signature in the headers, then in the payload body."""
    lowered = {str(k).lower(): v for k, v in (headers or {}).items()}
    for name in SIGNATURE_HEADERS:
        value = _clean(lowered.get(name))
        if value:
            return value
    if isinstance(payload, dict):
        return _clean(payload.get("signature"))
    return None


def verify_signature(
    secret: str,
    headers: Mapping[str, str] | None,
    payload: Any,
    raw_body: str | bytes | None,
) -> None:
    """Raise WebhookSignatureError unless the delivery carries a valid signature."""
    provided = find_signature(headers, payload)
    if not provided:
        raise WebhookSignatureError("Missing webhook signature")
    if provided.lower().startswith("sha256="):
        provided = provided.split("=", 1)[1]

    # A signature carried inside the body cannot cover the raw bytes it sits in.
    in_body = find_signature(headers, None) is None
    if raw_body and raw_body.strip() and not in_body:
        message: str | bytes = raw_body
    else:
        body = dict(payload) if isinstance(payload, dict) else (payload or {})
        if isinstance(body, dict):
            body.pop("signature", None)
        message = canonical_json(body)

    expected = compute_signature(secret, message)
    if not hmac.compare_digest(expected, provided.strip().lower()):
        raise WebhookSignatureError("Invalid webhook signature")


def _extract_token(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.headers.get("x-api-key", "").strip()


def require_admin_api_key(request: Request) -> None:
    """Enforce admin key auth on lock/sync/integration routes when configured."""
    expected = settings.admin_api_key.strip()
    if not expected:
        return

    provided = _extract_token(request)
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid API key")
