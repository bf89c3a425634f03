"""Initial schema: quotes and audit_logs.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "quotes",
        sa.Column("quote_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("asset_id", sa.Text, nullable=False),
        sa.Column("quote_date", sa.Date, nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("value", sa.Double, nullable=True),
        sa.Column("last_value", sa.Double, nullable=True),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column(
            "components",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "conversions",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.UniqueConstraint("asset_id", "quote_date", name="uq_quotes_asset_date"),
    )
    op.create_index("ix_quotes_date", "quotes", ["quote_date"])

    op.create_table(
        "audit_logs",
        sa.Column("log_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("action", sa.Text, nullable=False),
        sa.Column("asset_id", sa.Text, nullable=False),
        sa.Column("asset_name", sa.Text, nullable=False),
        sa.Column("old_value", sa.Double, nullable=True),
        sa.Column("new_value", sa.Double, nullable=True),
        sa.Column("user_name", sa.Text, nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column(
            "affected_assets",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("target_date", sa.Date, nullable=False),
    )
    op.create_index("ix_audit_logs_target_date", "audit_logs", ["target_date"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_timestamp", table_name="audit_logs")
    op.drop_index("ix_audit_logs_target_date", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_quotes_date", table_name="quotes")
    op.drop_table("quotes")
