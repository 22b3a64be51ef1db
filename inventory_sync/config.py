"""Inventory sync configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class InventorySettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///inventory.db"
    echo_sql: bool = False
    app_title: str = "Inventory Sync"
    admin_api_key: str = ""

    # Outbound batching
    debounce_ms: int = 1000
    flush_worker_enabled: bool = True
    flush_interval_seconds: float = 5.0
    flush_batch_size: int = 20
    outbound_log_limit: int = 500
    push_timeout_seconds: float = 30.0
    processing_timeout_seconds: float = 300.0

    # Inbound webhooks
    webhook_source_label: str = "webhook:ota-sync"
    migrate_legacy_secrets_on_startup: bool = True

    model_config = {"env_prefix": "INV_", "env_file": ".env", "extra": "ignore"}

    @property
    def debounce_seconds(self) -> float:
        return max(self.debounce_ms, 0) / 1000.0


settings = InventorySettings()
