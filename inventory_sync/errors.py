"""Domain errors raised by the guard and the sync dispatcher."""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for domain failures with a client-facing message."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(InventoryError):
    """Malformed input. Raised before any storage access."""

    status_code = 400


class ConflictError(InventoryError):
    """The requested interval overlaps an existing booking, lock or block."""

    status_code = 409


class WebhookSignatureError(Exception):
    """Webhook delivery is missing a signature or the signature does not match."""
