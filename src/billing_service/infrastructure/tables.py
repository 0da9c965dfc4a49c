"""Table definitions for the billing schema.

``invoice_payments.invoice_id`` is both the primary key and a foreign key to
``invoices``, so at most one payment attempt can exist per invoice. Claiming
an invoice for payment relies on this constraint.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, MetaData, Numeric, String, Table


metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("currency", String(3), nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("currency", String(3), nullable=False),
    Column("value", Numeric(1000, 2), nullable=False),
    Column("customer_id", Integer, ForeignKey("customers.id"), nullable=False, index=True),
)

invoice_payments = Table(
    "invoice_payments",
    metadata,
    Column("invoice_id", Integer, ForeignKey("invoices.id"), primary_key=True),
    Column("status", String(20), nullable=False, index=True),
    Column("attempt_id", String(26), nullable=False, unique=True),
    Column("started_at", DateTime(timezone=True), nullable=False),
)
