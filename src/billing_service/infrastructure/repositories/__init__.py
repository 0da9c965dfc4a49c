"""Repository implementations."""

from billing_service.infrastructure.repositories.customer import CustomerRepository
from billing_service.infrastructure.repositories.invoice import InvoiceRepository
from billing_service.infrastructure.repositories.invoice_payment import InvoicePaymentRepository


__all__ = [
    "CustomerRepository",
    "InvoicePaymentRepository",
    "InvoiceRepository",
]
