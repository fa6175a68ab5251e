"""Create the pending_mutation table.

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "pending_mutation",
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("kind", sa.String(length=128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(length=11), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("entity_type", "entity_id", name="pk_pending_mutation"),
    )
    op.create_index(
        "ix_pending_mutation_sequence",
        "pending_mutation",
        ["sequence"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_pending_mutation_sequence", table_name="pending_mutation")
    op.drop_table("pending_mutation")
