"""Shared pytest fixtures for billing service tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from billing_service.domain.models import (
    Currency,
    Customer,
    Invoice,
    InvoicePayment,
    InvoicePaymentStatus,
    InvoiceStatus,
    Money,
)
from billing_service.infrastructure.database import Database
from billing_service.infrastructure.ledger import PaymentLedger


@pytest.fixture
def make_invoice() -> Callable[..., Invoice]:
    """Factory for in-memory invoices."""

    def _make(
        invoice_id: int = 1,
        status: InvoiceStatus = InvoiceStatus.PENDING,
        value: str = "8.88",
        currency: Currency = Currency.EUR,
        customer_id: int = 1,
    ) -> Invoice:
        return Invoice(
            id=invoice_id,
            customer_id=customer_id,
            amount=Money(value=Decimal(value), currency=currency),
            status=status,
        )

    return _make


@pytest.fixture
def make_payment() -> Callable[..., InvoicePayment]:
    """Factory for in-memory payment attempts."""

    def _make(
        invoice_id: int = 1,
        status: InvoicePaymentStatus = InvoicePaymentStatus.STARTED,
    ) -> InvoicePayment:
        payment = InvoicePayment.start(invoice_id)
        payment.status = status
        return payment

    return _make


@pytest.fixture
def mock_ledger() -> AsyncMock:
    """Create mock PaymentLedger with no invoices and every write refused."""
    ledger = AsyncMock(spec=PaymentLedger)
    ledger.fetch_invoice = AsyncMock(return_value=None)
    ledger.fetch_invoices = AsyncMock(return_value=[])
    ledger.fetch_pending_invoices = AsyncMock(return_value=[])
    ledger.fetch_invoice_payment = AsyncMock(return_value=None)
    ledger.fetch_invoice_payments = AsyncMock(return_value=[])
    ledger.claim_payment = AsyncMock(return_value=False)
    ledger.confirm_paid = AsyncMock(return_value=False)
    ledger.release_failed = AsyncMock(return_value=False)
    ledger.fetch_customer = AsyncMock(return_value=None)
    ledger.fetch_customers = AsyncMock(return_value=[])
    return ledger


@pytest.fixture
def mock_payment_provider() -> AsyncMock:
    """Create mock payment provider that confirms every charge."""
    provider = AsyncMock()
    provider.charge = AsyncMock(return_value=True)
    return provider


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """SQLite-backed database with the billing schema created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
def ledger(database: Database) -> PaymentLedger:
    return PaymentLedger(database)


@pytest.fixture
async def customer(ledger: PaymentLedger) -> Customer:
    return await ledger.create_customer(Currency.EUR)


@pytest.fixture
def create_invoice(ledger: PaymentLedger, customer: Customer) -> Callable[..., Awaitable[Invoice]]:
    """Factory for invoices persisted in the ledger."""

    async def _create(value: str = "8.88") -> Invoice:
        return await ledger.create_invoice(Money(value=Decimal(value), currency=customer.currency), customer.id)

    return _create
