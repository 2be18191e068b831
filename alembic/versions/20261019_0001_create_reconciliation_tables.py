"""create reconciliation tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "branches",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "account_products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "universal_bankers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "nip",
            sa.String(length=64),
            nullable=False,
            comment="Employee number used as banker code in performance reports",
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("position", sa.String(length=100), nullable=True, comment="Job title shown in exported reports"),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("nip"),
    )
    op.create_index("ix_universal_bankers_branch_id", "universal_bankers", ["branch_id"], unique=False)

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cif", sa.String(length=64), nullable=False, comment="Client CIF number"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cif"),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("account_product_id", sa.Integer(), nullable=True),
        sa.Column(
            "universal_banker_id",
            sa.Integer(),
            nullable=True,
            comment="Banker currently managing the account",
        ),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("current_balance", sa.Numeric(19, 4), server_default=sa.text("0"), nullable=False),
        sa.Column("available_balance", sa.Numeric(19, 4), server_default=sa.text("0"), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="IDR", nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, comment="active, inactive, blocked"),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_transaction_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_product_id"], ["account_products.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["universal_banker_id"], ["universal_bankers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_number"),
    )
    op.create_index("ix_accounts_client_id", "accounts", ["client_id"], unique=False)
    op.create_index("ix_accounts_universal_banker_id", "accounts", ["universal_banker_id"], unique=False)

    op.create_table(
        "account_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False, comment="new_balance - previous_balance"),
        sa.Column("previous_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("new_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("available_balance", sa.Numeric(19, 4), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "account_id",
            "transaction_date",
            name="uq_account_transactions_account_date",
        ),
    )

    op.create_table(
        "universal_banker_daily_balances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("universal_banker_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("daily_change", sa.Numeric(19, 4), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["universal_banker_id"], ["universal_bankers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "universal_banker_id",
            "date",
            name="uq_universal_banker_daily_balances_banker_date",
        ),
    )
    op.create_index(
        "ix_universal_banker_daily_balances_date",
        "universal_banker_daily_balances",
        ["date"],
        unique=False,
    )

    op.create_table(
        "job_results",
        sa.Column("cache_key", sa.String(length=255), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("cache_key"),
    )
    op.create_index("ix_job_results_expires_at", "job_results", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_results_expires_at", table_name="job_results")
    op.drop_table("job_results")
    op.drop_index("ix_universal_banker_daily_balances_date", table_name="universal_banker_daily_balances")
    op.drop_table("universal_banker_daily_balances")
    op.drop_table("account_transactions")
    op.drop_index("ix_accounts_universal_banker_id", table_name="accounts")
    op.drop_index("ix_accounts_client_id", table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("clients")
    op.drop_index("ix_universal_bankers_branch_id", table_name="universal_bankers")
    op.drop_table("universal_bankers")
    op.drop_table("account_products")
    op.drop_table("branches")
