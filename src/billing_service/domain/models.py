from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from ulid import ULID


class Currency(Enum):
    EUR = "EUR"
    USD = "USD"
    DKK = "DKK"
    SEK = "SEK"
    GBP = "GBP"


class InvoiceStatus(Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PAID = "PAID"


class InvoicePaymentStatus(Enum):
    STARTED = "STARTED"
    PAID = "PAID"


class ChargeResultStatus(Enum):
    PAID = "PAID"
    FAILED_CONCURRENT_PAYMENT = "FAILED_CONCURRENT_PAYMENT"
    FAILED_REJECTED = "FAILED_REJECTED"
    UNKNOWN = "UNKNOWN"


def invoice_status_from_payment(payment_status: InvoicePaymentStatus | None) -> InvoiceStatus:
    """Project the stored payment attempt status onto the invoice status."""
    if payment_status is None:
        return InvoiceStatus.PENDING
    if payment_status == InvoicePaymentStatus.STARTED:
        return InvoiceStatus.IN_PROGRESS
    return InvoiceStatus.PAID


@dataclass(frozen=True)
class Money:
    value: Decimal
    currency: Currency


@dataclass
class Customer:
    id: int
    currency: Currency


@dataclass
class Invoice:
    id: int
    customer_id: int
    amount: Money
    status: InvoiceStatus = InvoiceStatus.PENDING


@dataclass
class InvoicePayment:
    invoice_id: int
    status: InvoicePaymentStatus
    attempt_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def start(cls, invoice_id: int) -> "InvoicePayment":
        return cls(
            invoice_id=invoice_id,
            status=InvoicePaymentStatus.STARTED,
            attempt_id=str(ULID()),
        )


@dataclass(frozen=True)
class ChargeResult:
    invoice_id: int
    status: ChargeResultStatus
