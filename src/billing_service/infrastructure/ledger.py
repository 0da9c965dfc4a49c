from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
import structlog
from sqlalchemy.exc import SQLAlchemyError

from billing_service.application.unit_of_work import UnitOfWork
from billing_service.domain.exceptions import StorageError
from billing_service.domain.models import (
    Currency,
    Customer,
    Invoice,
    InvoicePayment,
    InvoicePaymentStatus,
    Money,
)
from billing_service.infrastructure.database import Database


logger = structlog.get_logger()


class PaymentLedger:
    """
    Durable record of invoices and their payment attempts.

    Every operation runs in its own transaction and is committed before it
    returns. Payment state only changes through three primitives:

    - claim_payment: insert a STARTED attempt if the invoice has none
    - confirm_paid: STARTED -> PAID
    - release_failed: delete a STARTED attempt

    The invoice_payments primary key makes claim_payment the only concurrency
    gate. Two processes claiming the same invoice get exactly one True, with
    no locks held outside the database.

    Driver and connectivity errors (refused or timed-out connections, failed
    authentication) surface as StorageError.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[UnitOfWork]:
        try:
            async with self._database.session() as session:
                async with UnitOfWork(session) as uow:
                    yield uow
                    await uow.commit()
        except (SQLAlchemyError, OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError(str(e) or type(e).__name__) from e

    async def fetch_invoice(self, invoice_id: int) -> Invoice | None:
        async with self._transaction() as uow:
            return await uow.invoices.get(invoice_id)

    async def fetch_invoices(self) -> list[Invoice]:
        async with self._transaction() as uow:
            return await uow.invoices.get_all()

    async def fetch_pending_invoices(self) -> list[Invoice]:
        async with self._transaction() as uow:
            return await uow.invoices.get_pending()

    async def create_invoice(self, amount: Money, customer_id: int) -> Invoice:
        async with self._transaction() as uow:
            invoice_id = await uow.invoices.add(amount, customer_id)
        return Invoice(id=invoice_id, customer_id=customer_id, amount=amount)

    async def fetch_invoice_payment(self, invoice_id: int) -> InvoicePayment | None:
        async with self._transaction() as uow:
            return await uow.invoice_payments.get(invoice_id)

    async def fetch_invoice_payments(self, status: InvoicePaymentStatus | None = None) -> list[InvoicePayment]:
        async with self._transaction() as uow:
            return await uow.invoice_payments.get_all(status)

    async def claim_payment(self, invoice_id: int) -> bool:
        payment = InvoicePayment.start(invoice_id)
        async with self._transaction() as uow:
            claimed = await uow.invoice_payments.add_if_absent(payment)
        if claimed:
            logger.info("payment_claimed", invoice_id=invoice_id, attempt_id=payment.attempt_id)
        return claimed

    async def confirm_paid(self, invoice_id: int) -> bool:
        async with self._transaction() as uow:
            return await uow.invoice_payments.mark_paid(invoice_id)

    async def release_failed(self, invoice_id: int) -> bool:
        async with self._transaction() as uow:
            return await uow.invoice_payments.delete_started(invoice_id)

    async def fetch_customer(self, customer_id: int) -> Customer | None:
        async with self._transaction() as uow:
            return await uow.customers.get(customer_id)

    async def fetch_customers(self) -> list[Customer]:
        async with self._transaction() as uow:
            return await uow.customers.get_all()

    async def create_customer(self, currency: Currency) -> Customer:
        async with self._transaction() as uow:
            customer_id = await uow.customers.add(currency)
        return Customer(id=customer_id, currency=currency)
