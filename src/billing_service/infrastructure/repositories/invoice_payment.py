from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import CursorResult, DateTime, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from billing_service.domain.models import InvoicePayment, InvoicePaymentStatus


def _as_utc(value: datetime | str) -> datetime:
    # SQLite hands timestamps back as naive ISO strings.
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _to_invoice_payment(row: Any) -> InvoicePayment:
    return InvoicePayment(
        invoice_id=row.invoice_id,
        status=InvoicePaymentStatus(row.status),
        attempt_id=row.attempt_id,
        started_at=_as_utc(row.started_at),
    )


class InvoicePaymentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, invoice_id: int) -> InvoicePayment | None:
        result = await self._session.execute(
            text("""
                SELECT invoice_id, status, attempt_id, started_at
                FROM invoice_payments
                WHERE invoice_id = :invoice_id
            """),
            {"invoice_id": invoice_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return _to_invoice_payment(row)

    async def get_all(self, status: InvoicePaymentStatus | None = None) -> list[InvoicePayment]:
        if status is None:
            result = await self._session.execute(
                text("""
                    SELECT invoice_id, status, attempt_id, started_at
                    FROM invoice_payments
                    ORDER BY invoice_id
                """),
            )
        else:
            result = await self._session.execute(
                text("""
                    SELECT invoice_id, status, attempt_id, started_at
                    FROM invoice_payments
                    WHERE status = :status
                    ORDER BY invoice_id
                """),
                {"status": status.value},
            )
        return [_to_invoice_payment(row) for row in result.fetchall()]

    async def add_if_absent(self, payment: InvoicePayment) -> bool:
        """Insert the attempt unless one already exists for the invoice.

        Returns:
            True if the row was inserted, False if the invoice already had one.
        """
        result = cast(
            "CursorResult[Any]",
            await self._session.execute(
                text("""
                    INSERT INTO invoice_payments (invoice_id, status, attempt_id, started_at)
                    VALUES (:invoice_id, :status, :attempt_id, :started_at)
                    ON CONFLICT (invoice_id) DO NOTHING
                """).bindparams(bindparam("started_at", type_=DateTime(timezone=True))),
                {
                    "invoice_id": payment.invoice_id,
                    "status": payment.status.value,
                    "attempt_id": payment.attempt_id,
                    "started_at": payment.started_at,
                },
            ),
        )
        return (result.rowcount or 0) == 1

    async def mark_paid(self, invoice_id: int) -> bool:
        result = cast(
            "CursorResult[Any]",
            await self._session.execute(
                text("""
                    UPDATE invoice_payments
                    SET status = :paid
                    WHERE invoice_id = :invoice_id AND status = :started
                """),
                {
                    "invoice_id": invoice_id,
                    "paid": InvoicePaymentStatus.PAID.value,
                    "started": InvoicePaymentStatus.STARTED.value,
                },
            ),
        )
        return (result.rowcount or 0) > 0

    async def delete_started(self, invoice_id: int) -> bool:
        result = cast(
            "CursorResult[Any]",
            await self._session.execute(
                text("""
                    DELETE FROM invoice_payments
                    WHERE invoice_id = :invoice_id AND status = :started
                """),
                {
                    "invoice_id": invoice_id,
                    "started": InvoicePaymentStatus.STARTED.value,
                },
            ),
        )
        return (result.rowcount or 0) > 0
