"""Initial schema: customers, invoices, invoice payments

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("currency", sa.String(3), nullable=False),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("value", sa.Numeric(1000, 2), nullable=False),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=False),
    )
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])

    # invoice_id is both PK and FK: at most one payment attempt per invoice.
    op.create_table(
        "invoice_payments",
        sa.Column("invoice_id", sa.Integer, sa.ForeignKey("invoices.id"), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attempt_id", sa.String(26), nullable=False, unique=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_invoice_payments_status", "invoice_payments", ["status"])


def downgrade() -> None:
    op.drop_table("invoice_payments")
    op.drop_table("invoices")
    op.drop_table("customers")
