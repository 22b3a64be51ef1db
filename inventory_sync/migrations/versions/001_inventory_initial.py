"""Initial inventory sync schema.

Revision ID: 001_inventory_initial
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_inventory_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "booking"):
        op.create_table(
            "booking",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=False),
            sa.Column("checkin", sa.Date(), nullable=False),
            sa.Column("checkout", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="CONFIRMED"),
            sa.Column("origin_channel", sa.String(length=50), nullable=True),
            sa.Column("guest_name", sa.String(length=200), nullable=True),
            sa.Column("external_ref", sa.String(length=120), nullable=True),
            sa.Column("import_source", sa.String(length=100), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_booking_unit_id", "booking", ["unit_id"], unique=False)
        op.create_index("ix_booking_external_ref", "booking", ["external_ref"], unique=False)

    if not _has_table(bind, "unit_locks"):
        op.create_table(
            "unit_locks",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("lock_source", sa.String(length=10), nullable=False, server_default="SYSTEM"),
            sa.Column("lock_owner_booking_id", sa.Integer(), nullable=True),
            sa.Column("reason", sa.String(length=240), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("lock_owner_booking_id"),
        )
        op.create_index("ix_unit_locks_unit_id", "unit_locks", ["unit_id"], unique=False)

    if not _has_table(bind, "blocks"):
        op.create_table(
            "blocks",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("reason", sa.String(length=240), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_blocks_unit_id", "blocks", ["unit_id"], unique=False)

    if not _has_table(bind, "channel_sync_queue"):
        op.create_table(
            "channel_sync_queue",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=60), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("last_error", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_channel_sync_queue_unit_id", "channel_sync_queue", ["unit_id"], unique=False)
        op.create_index("ix_channel_sync_queue_status", "channel_sync_queue", ["status"], unique=False)

    if not _has_table(bind, "channel_integrations"):
        op.create_table(
            "channel_integrations",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("channel_key", sa.String(length=50), nullable=False),
            sa.Column("channel_name", sa.String(length=120), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("settings", sa.JSON(), nullable=True),
            sa.Column("credentials", sa.JSON(), nullable=True),
            sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_status", sa.String(length=20), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("last_summary", sa.JSON(), nullable=True),
            sa.Column("updated_by", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_channel_integrations_channel_key", "channel_integrations", ["channel_key"], unique=True
        )

    if not _has_table(bind, "audit_log"):
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column("entity_id", sa.Integer(), nullable=False),
            sa.Column("action", sa.String(length=30), nullable=False),
            sa.Column("before", sa.JSON(), nullable=True),
            sa.Column("after", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_log_entity_type", "audit_log", ["entity_type"], unique=False)
        op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    for table in (
        "audit_log",
        "channel_integrations",
        "channel_sync_queue",
        "blocks",
        "unit_locks",
        "booking",
    ):
        if _has_table(bind, table):
            op.drop_table(table)
