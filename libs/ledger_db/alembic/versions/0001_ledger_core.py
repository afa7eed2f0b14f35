# ruff: noqa: I001
"""Ledger transactions and learned category mappings.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-16
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ledger_transactions
    op.create_table(
        "ledger_transactions",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("sender", sa.String(), nullable=True),
        sa.Column("is_auto_added", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_via", sa.String(), nullable=True),
        sa.Column("confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("category_confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("last4_digits", sa.String(4), nullable=True),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("raw_data", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type in ('income','expense')", name="ck_ledger_tx_type"),
        sa.CheckConstraint("source in ('sms','receipt','manual')", name="ck_ledger_tx_source"),
        sa.CheckConstraint(
            "verified_via IS NULL OR verified_via in ('sms','manual')",
            name="ck_ledger_tx_verified_via",
        ),
        sa.CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="ck_ledger_tx_confidence",
        ),
        sa.CheckConstraint(
            "category_confidence IS NULL OR "
            "(category_confidence >= 0 AND category_confidence <= 1)",
            name="ck_ledger_tx_category_confidence",
        ),
    )
    op.create_index("ix_ledger_transactions_date", "ledger_transactions", ["date"])
    op.create_index(
        "ix_ledger_transactions_reference_id", "ledger_transactions", ["reference_id"]
    )
    op.create_index("ix_ledger_tx_needs_review", "ledger_transactions", ["needs_review"])

    # category_mappings (merchant memory)
    op.create_table(
        "category_mappings",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("merchant", sa.String(), nullable=False, unique=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("confidence", sa.Numeric(3, 2), nullable=False),
        sa.Column("times_used", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("last_used", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_category_mappings_confidence"
        ),
        sa.CheckConstraint("times_used >= 1", name="ck_category_mappings_times_used"),
    )


def downgrade() -> None:
    op.drop_table("category_mappings")
    op.drop_index("ix_ledger_tx_needs_review", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_reference_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_date", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
