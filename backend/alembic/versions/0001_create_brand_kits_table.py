"""Create brand_kits table with kit_json JSONB document.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create brand_kits table."""
    op.create_table(
        "brand_kits",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("mode", sa.String(length=50), nullable=False),
        sa.Column("business", sa.Text(), nullable=False),
        sa.Column("vibe", sa.Text(), nullable=False),
        sa.Column(
            "kit_json",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "version",
            sa.Integer(),
            server_default=sa.text("1"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_brand_kits_owner_id"),
        "brand_kits",
        ["owner_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_brand_kits_created_at"),
        "brand_kits",
        ["created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop brand_kits table."""
    op.drop_index(op.f("ix_brand_kits_created_at"), table_name="brand_kits")
    op.drop_index(op.f("ix_brand_kits_owner_id"), table_name="brand_kits")
    op.drop_table("brand_kits")
