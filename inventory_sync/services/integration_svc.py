"""Channel integration registry: definitions, settings and last-sync status."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ValidationError
from ..models.booking import BOOKING_CONFIRMED, BOOKING_PENDING
from ..models.integration import ChannelIntegration
from ..security import (
    CANONICAL_SECRET_FIELD,
    LEGACY_CREDENTIAL_SECRET_FIELDS,
    LEGACY_SETTINGS_SECRET_FIELDS,
    find_legacy_secret,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelDefinition:
    key: str
    name: str
    default_agency: str
    supports_auto: bool
    supports_manual: bool
    auto_formats: tuple[str, ...] = ()
    manual_formats: tuple[str, ...] = ()
    description: str = ""


CHANNEL_DEFINITIONS: tuple[ChannelDefinition, ...] = (
    ChannelDefinition(
        key="booking_com",
        name="Booking.com",
        default_agency="BOOKING.COM",
        supports_auto=True,
        supports_manual=True,
        auto_formats=("ics", "csv"),
        manual_formats=("csv", "xlsx", "ics"),
        description="Extranet CSV exports or the iCal link provided by the channel.",
    ),
    ChannelDefinition(
        key="airbnb",
        name="Airbnb",
        default_agency="AIRBNB",
        supports_auto=True,
        supports_manual=True,
        auto_formats=("ics",),
        manual_formats=("ics",),
        description="iCal calendar sync and real-time reservation webhooks.",
    ),
    ChannelDefinition(
        key="booking",
        name="Booking.com (real time)",
        default_agency="BOOKING",
        supports_auto=True,
        supports_manual=False,
        description="Real-time API channel for rates, availability and reservations.",
    ),
    ChannelDefinition(
        key="expedia",
        name="Expedia",
        default_agency="EXPEDIA",
        supports_auto=True,
        supports_manual=False,
        description="Expedia Partner Central inventory sync and reservation delivery.",
    ),
    ChannelDefinition(
        key="i_escape",
        name="i-escape",
        default_agency="I-ESCAPE",
        supports_auto=True,
        supports_manual=True,
        auto_formats=("csv",),
        manual_formats=("csv", "xlsx"),
        description="CSV/XLSX reservation exports with scheduled sync.",
    ),
    ChannelDefinition(
        key="splendia",
        name="Splendia",
        default_agency="SPLENDIA",
        supports_auto=True,
        supports_manual=True,
        auto_formats=("csv",),
        manual_formats=("csv", "xlsx"),
        description="Manual file imports or an automatic sync link.",
    ),
)

_DEFINITIONS_BY_KEY = {definition.key: definition for definition in CHANNEL_DEFINITIONS}


def get_channel_definition(channel_key: str) -> ChannelDefinition | None:
    return _DEFINITIONS_BY_KEY.get(channel_key)


def supports_auto_sync(integration: ChannelIntegration) -> bool:
    """Active, auto-capable and not switched off in its settings."""
    if not integration.is_active:
        return False
    definition = get_channel_definition(integration.channel_key)
    if definition is None or not definition.supports_auto:
        return False
    return (integration.settings or {}).get("auto_enabled") is not False


def default_import_status(integration: ChannelIntegration | None) -> str:
    status = ((integration.settings or {}) if integration else {}).get("default_status")
    return BOOKING_PENDING if status == BOOKING_PENDING else BOOKING_CONFIRMED


# ── Registry ──────────────────────────────────────────────────────────────

async def ensure_default_integrations(db: AsyncSession) -> int:
    """Seed an inactive integration row for every known channel."""
    result = await db.execute(select(ChannelIntegration.channel_key))
    existing = set(result.scalars().all())
    created = 0
    for definition in CHANNEL_DEFINITIONS:
        if definition.key in existing:
            continue
        db.add(
            ChannelIntegration(
                channel_key=definition.key,
                channel_name=definition.name,
                is_active=False,
                settings={},
                credentials={},
            )
        )
        created += 1
    if created:
        await db.commit()
    return created


async def list_integrations(db: AsyncSession) -> list[ChannelIntegration]:
    stmt = select(ChannelIntegration).order_by(ChannelIntegration.channel_name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_integration(db: AsyncSession, channel_key: str) -> ChannelIntegration | None:
    stmt = select(ChannelIntegration).where(ChannelIntegration.channel_key == channel_key)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _normalize_str(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


async def save_integration_settings(
    db: AsyncSession,
    channel_key: str,
    payload: dict,
    user_id: int | None = None,
) -> ChannelIntegration:
    """Merge submitted settings into the integration row."""
    integration = await get_integration(db, channel_key)
    if integration is None:
        raise ValidationError(f"Unknown channel: {channel_key}")

    current_settings = dict(integration.settings or {})
    current_credentials = dict(integration.credentials or {})

    next_settings = dict(current_settings)
    if payload.get("auto_enabled") is not None:
        next_settings["auto_enabled"] = bool(payload["auto_enabled"])
    for key in ("auto_url", "auto_format", "push_url"):
        if payload.get(key) is not None:
            next_settings[key] = _normalize_str(payload[key])
    if payload.get("default_status") is not None:
        next_settings["default_status"] = (
            BOOKING_PENDING if payload["default_status"] == BOOKING_PENDING else BOOKING_CONFIRMED
        )

    next_credentials = dict(current_credentials)
    if payload.get("username") is not None:
        next_credentials["username"] = _normalize_str(payload.get("username"))
    if payload.get("password"):
        next_credentials["password"] = payload["password"]
    elif payload.get("retain_password") is False:
        next_credentials["password"] = ""
    if payload.get("signing_secret") is not None:
        next_credentials[CANONICAL_SECRET_FIELD] = _normalize_str(payload.get("signing_secret"))

    next_settings, next_credentials = collapse_secret_aliases(next_settings, next_credentials)

    if "is_active" in payload and payload["is_active"] is not None:
        integration.is_active = bool(payload["is_active"])
    integration.settings = next_settings
    integration.credentials = next_credentials
    integration.updated_by = user_id
    await db.commit()
    await db.refresh(integration)
    return integration


async def record_sync_result(
    db: AsyncSession,
    channel_key: str,
    status: str,
    summary: dict | None = None,
    error: str | None = None,
    user_id: int | None = None,
) -> None:
    integration = await get_integration(db, channel_key)
    if integration is None:
        return
    integration.last_synced_at = datetime.now(timezone.utc)
    integration.last_status = status
    integration.last_error = error
    if summary is not None:
        integration.last_summary = summary
    integration.updated_by = user_id
    await db.commit()


# ── Secret migration ──────────────────────────────────────────────────────

def collapse_secret_aliases(settings_data: dict, credentials: dict) -> tuple[dict, dict]:
    """Move a legacy secret alias into the canonical field and drop the aliases."""
    settings_data = dict(settings_data or {})
    credentials = dict(credentials or {})
    if not _normalize_str(credentials.get(CANONICAL_SECRET_FIELD)):
        legacy = find_legacy_secret(settings_data, credentials)
        if legacy:
            credentials[CANONICAL_SECRET_FIELD] = legacy
    for field_name in LEGACY_SETTINGS_SECRET_FIELDS:
        settings_data.pop(field_name, None)
    for field_name in LEGACY_CREDENTIAL_SECRET_FIELDS:
        credentials.pop(field_name, None)
    return settings_data, credentials


async def migrate_legacy_secrets(db: AsyncSession) -> list[str]:
    """One-time rewrite of legacy secret aliases. Returns migrated channel keys."""
    migrated: list[str] = []
    for integration in await list_integrations(db):
        settings_data, credentials = collapse_secret_aliases(
            integration.settings or {}, integration.credentials or {}
        )
        if settings_data != (integration.settings or {}) or credentials != (integration.credentials or {}):
            integration.settings = settings_data
            integration.credentials = credentials
            migrated.append(integration.channel_key)
    if migrated:
        await db.commit()
        logger.info("Migrated legacy secret fields for channels: %s", ", ".join(migrated))
    return migrated


@dataclass
class IntegrationView:
    """Serializable integration summary without secret material."""

    key: str
    name: str
    is_active: bool
    supports_auto: bool
    supports_manual: bool
    auto_formats: list[str] = field(default_factory=list)
    manual_formats: list[str] = field(default_factory=list)
    default_agency: str = ""
    settings: dict = field(default_factory=dict)
    has_secret: bool = False
    last_synced_at: datetime | None = None
    last_status: str | None = None
    last_error: str | None = None
    last_summary: dict | None = None


def describe_integration(integration: ChannelIntegration, has_secret: bool) -> IntegrationView:
    definition = get_channel_definition(integration.channel_key)
    return IntegrationView(
        key=integration.channel_key,
        name=integration.channel_name,
        is_active=integration.is_active,
        supports_auto=bool(definition and definition.supports_auto),
        supports_manual=bool(definition and definition.supports_manual),
        auto_formats=list(definition.auto_formats) if definition else [],
        manual_formats=list(definition.manual_formats) if definition else [],
        default_agency=definition.default_agency if definition else integration.channel_name,
        settings=dict(integration.settings or {}),
        has_secret=has_secret,
        last_synced_at=integration.last_synced_at,
        last_status=integration.last_status,
        last_error=integration.last_error,
        last_summary=integration.last_summary,
    )
