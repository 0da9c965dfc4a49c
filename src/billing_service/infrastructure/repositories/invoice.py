from decimal import Decimal
from typing import Any

from sqlalchemy import Numeric, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from billing_service.domain.models import (
    Currency,
    Invoice,
    InvoicePaymentStatus,
    Money,
    invoice_status_from_payment,
)


_CENTS = Decimal("0.01")

_SELECT_INVOICES = """
    SELECT i.id, i.customer_id, i.value, i.currency, p.status AS payment_status
    FROM invoices i
    LEFT JOIN invoice_payments p ON p.invoice_id = i.id
"""


def _to_invoice(row: Any) -> Invoice:
    payment_status = InvoicePaymentStatus(row.payment_status) if row.payment_status is not None else None
    return Invoice(
        id=row.id,
        customer_id=row.customer_id,
        amount=Money(
            value=Decimal(str(row.value)).quantize(_CENTS),
            currency=Currency(row.currency),
        ),
        status=invoice_status_from_payment(payment_status),
    )


class InvoiceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, invoice_id: int) -> Invoice | None:
        result = await self._session.execute(
            text(_SELECT_INVOICES + " WHERE i.id = :id"),
            {"id": invoice_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return _to_invoice(row)

    async def get_all(self) -> list[Invoice]:
        result = await self._session.execute(text(_SELECT_INVOICES + " ORDER BY i.id"))
        return [_to_invoice(row) for row in result.fetchall()]

    async def get_pending(self) -> list[Invoice]:
        result = await self._session.execute(text(_SELECT_INVOICES + " WHERE p.invoice_id IS NULL ORDER BY i.id"))
        return [_to_invoice(row) for row in result.fetchall()]

    async def add(self, amount: Money, customer_id: int) -> int:
        result = await self._session.execute(
            text("""
                INSERT INTO invoices (currency, value, customer_id)
                VALUES (:currency, :value, :customer_id)
                RETURNING id
            """).bindparams(bindparam("value", type_=Numeric(1000, 2))),
            {
                "currency": amount.currency.value,
                "value": amount.value,
                "customer_id": customer_id,
            },
        )
        return int(result.scalar_one())
