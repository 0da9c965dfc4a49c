from enum import Enum

import structlog

from billing_service.domain.exceptions import (
    CustomerNotFoundError,
    InvoiceNotFoundError,
    InvoicePaymentNotFoundError,
    PaymentResolutionError,
)
from billing_service.domain.models import Customer, Invoice, InvoicePayment, InvoicePaymentStatus
from billing_service.infrastructure.ledger import PaymentLedger


logger = structlog.get_logger()


class InvoiceService:
    def __init__(self, ledger: PaymentLedger) -> None:
        self._ledger = ledger

    async def fetch_all(self) -> list[Invoice]:
        return await self._ledger.fetch_invoices()

    async def fetch(self, invoice_id: int) -> Invoice:
        invoice = await self._ledger.fetch_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    async def fetch_all_payments(self, status: InvoicePaymentStatus | None = None) -> list[InvoicePayment]:
        return await self._ledger.fetch_invoice_payments(status)

    async def fetch_payment(self, invoice_id: int) -> InvoicePayment:
        await self.fetch(invoice_id)
        payment = await self._ledger.fetch_invoice_payment(invoice_id)
        if payment is None:
            raise InvoicePaymentNotFoundError(invoice_id)
        return payment


class CustomerService:
    def __init__(self, ledger: PaymentLedger) -> None:
        self._ledger = ledger

    async def fetch_all(self) -> list[Customer]:
        return await self._ledger.fetch_customers()

    async def fetch(self, customer_id: int) -> Customer:
        customer = await self._ledger.fetch_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer


class ResolutionOutcome(Enum):
    PAID = "PAID"
    REJECTED = "REJECTED"


class PaymentReconciliationService:
    """Manual resolution of payment attempts whose charge outcome is unknown.

    An operator checks the provider's records for a frozen attempt and then
    records what actually happened. Nothing calls this automatically.
    """

    def __init__(self, ledger: PaymentLedger) -> None:
        self._ledger = ledger

    async def fetch_frozen_payments(self) -> list[InvoicePayment]:
        return await self._ledger.fetch_invoice_payments(InvoicePaymentStatus.STARTED)

    async def resolve(self, invoice_id: int, outcome: ResolutionOutcome) -> InvoicePayment | None:
        """Record the operator's decision for a STARTED attempt.

        Returns:
            The PAID attempt, or None when the attempt was released.
        """
        if await self._ledger.fetch_invoice(invoice_id) is None:
            raise InvoiceNotFoundError(invoice_id)

        if outcome == ResolutionOutcome.PAID:
            resolved = await self._ledger.confirm_paid(invoice_id)
        else:
            resolved = await self._ledger.release_failed(invoice_id)

        if not resolved:
            raise PaymentResolutionError(invoice_id)

        logger.info("payment_resolved_manually", invoice_id=invoice_id, outcome=outcome.value)
        if outcome == ResolutionOutcome.PAID:
            return await self._ledger.fetch_invoice_payment(invoice_id)
        return None
