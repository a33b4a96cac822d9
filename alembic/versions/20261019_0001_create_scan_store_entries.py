"""create scan_store_entries table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scan_store_entries",
        sa.Column("key", sa.String(length=255), nullable=False, comment="Store key, e.g. autogreen_deep_scan_data"),
        sa.Column("value", sa.JSON(), nullable=True, comment="JSON-serialisable payload"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("key", name="pk_scan_store_entries"),
    )


def downgrade() -> None:
    op.drop_table("scan_store_entries")
