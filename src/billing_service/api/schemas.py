"""Pydantic response and request schemas for the billing REST API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Self

from pydantic import BaseModel

from billing_service.domain.models import ChargeResult, Customer, Invoice, InvoicePayment


class MoneySchema(BaseModel):
    value: Decimal
    currency: str


class InvoiceResponse(BaseModel):
    id: int
    customer_id: int
    amount: MoneySchema
    status: str

    @classmethod
    def from_domain(cls, invoice: Invoice) -> Self:
        return cls(
            id=invoice.id,
            customer_id=invoice.customer_id,
            amount=MoneySchema(value=invoice.amount.value, currency=invoice.amount.currency.value),
            status=invoice.status.value,
        )


class CustomerResponse(BaseModel):
    id: int
    currency: str

    @classmethod
    def from_domain(cls, customer: Customer) -> Self:
        return cls(id=customer.id, currency=customer.currency.value)


class InvoicePaymentResponse(BaseModel):
    invoice_id: int
    status: str
    attempt_id: str
    started_at: datetime

    @classmethod
    def from_domain(cls, payment: InvoicePayment) -> Self:
        return cls(
            invoice_id=payment.invoice_id,
            status=payment.status.value,
            attempt_id=payment.attempt_id,
            started_at=payment.started_at,
        )


class ChargeResultResponse(BaseModel):
    invoice_id: int
    status: str

    @classmethod
    def from_domain(cls, result: ChargeResult) -> Self:
        return cls(invoice_id=result.invoice_id, status=result.status.value)


class ResolvePaymentRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"outcome": "PAID"}]}}

    outcome: Literal["PAID", "REJECTED"]


class ResolvePaymentResponse(BaseModel):
    invoice_id: int
    outcome: str
    payment: InvoicePaymentResponse | None = None


class ErrorResponse(BaseModel):
    detail: str
