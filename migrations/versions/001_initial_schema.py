"""Initial schema: kv_entries

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- kv_entries (archive:* and fallback:* keys) ---
    op.create_table(
        "kv_entries",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    # Prefix scans for clear-by-namespace and debugging
    op.create_index(
        "idx_kv_entries_key_prefix",
        "kv_entries",
        ["key"],
        postgresql_ops={"key": "text_pattern_ops"},
    )


def downgrade() -> None:
    op.drop_index("idx_kv_entries_key_prefix", table_name="kv_entries")
    op.drop_table("kv_entries")
