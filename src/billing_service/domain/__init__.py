"""Domain layer - business entities and rules."""

from billing_service.domain.exceptions import (
    CurrencyMismatchError,
    CustomerNotFoundError,
    DomainError,
    EntityNotFoundError,
    InvoiceNotFoundError,
    InvoicePaymentNotFoundError,
    NetworkError,
    PaymentProviderError,
    PaymentResolutionError,
    StorageError,
)
from billing_service.domain.models import (
    ChargeResult,
    ChargeResultStatus,
    Currency,
    Customer,
    Invoice,
    InvoicePayment,
    InvoicePaymentStatus,
    InvoiceStatus,
    Money,
    invoice_status_from_payment,
)


__all__ = [
    "ChargeResult",
    "ChargeResultStatus",
    "Currency",
    "CurrencyMismatchError",
    "Customer",
    "CustomerNotFoundError",
    "DomainError",
    "EntityNotFoundError",
    "Invoice",
    "InvoiceNotFoundError",
    "InvoicePayment",
    "InvoicePaymentNotFoundError",
    "InvoicePaymentStatus",
    "InvoiceStatus",
    "Money",
    "NetworkError",
    "PaymentProviderError",
    "PaymentResolutionError",
    "StorageError",
    "invoice_status_from_payment",
]
