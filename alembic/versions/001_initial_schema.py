"""Initial schema — catalog, discount rules, their join table and quotes.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "units",
        sa.Column("name", sa.String(200), nullable=False, index=True),
        sa.Column("description", sa.Text()),
        sa.Column("base_price", sa.String(64), nullable=False, comment="exact decimal string"),
        sa.Column("category", sa.String(100), index=True),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "discount_rules",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, index=True, comment="DiscountType enum value"),
        sa.Column("discount_percentage", sa.String(32), nullable=False, comment="exact decimal string"),
        sa.Column("threshold", sa.Integer(), comment="VOLUME rules only"),
        sa.Column("account_type", sa.String(20), comment="ACCOUNT_TYPE rules only"),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "quotes",
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.String(64), nullable=False, comment="exact decimal string"),
        sa.Column("discount", sa.String(64), nullable=False, comment="exact decimal string"),
        sa.Column("total", sa.String(64), nullable=False, comment="exact decimal string"),
        sa.Column("status", sa.String(20), nullable=False, comment="QuoteStatus enum value"),
        sa.Column("account_type", sa.String(20), nullable=False),
        sa.Column("owner_user_id", sa.String(255), nullable=False, index=True),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Join table ─────────────────────────────────────────────────────

    op.create_table(
        "unit_discounts",
        sa.Column("unit_id", sa.String(64), sa.ForeignKey("units.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "rule_id", sa.String(64), sa.ForeignKey("discount_rules.id", ondelete="CASCADE"), nullable=False
        ),
        sa.PrimaryKeyConstraint("unit_id", "rule_id"),
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("unit_discounts")
    op.drop_table("quotes")
    op.drop_table("discount_rules")
    op.drop_table("units")
