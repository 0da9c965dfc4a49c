class DomainError(Exception):
    """Base exception for domain errors."""


class EntityNotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvoiceNotFoundError(EntityNotFoundError):
    """Raised when an invoice cannot be found."""

    def __init__(self, invoice_id: int) -> None:
        super().__init__("Invoice", invoice_id)


class InvoicePaymentNotFoundError(EntityNotFoundError):
    """Raised when an invoice has no payment attempt recorded."""

    def __init__(self, invoice_id: int) -> None:
        super().__init__("InvoicePayment", invoice_id)


class CustomerNotFoundError(EntityNotFoundError):
    """Raised when a customer cannot be found."""

    def __init__(self, customer_id: int) -> None:
        super().__init__("Customer", customer_id)


class PaymentResolutionError(DomainError):
    """Raised when a manual resolution targets an invoice without a started payment."""

    def __init__(self, invoice_id: int) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has no started payment to resolve")


class StorageError(DomainError):
    """Raised when the payment ledger storage fails."""


class PaymentProviderError(DomainError):
    """Base exception for failures reported by the external payment provider."""


class NetworkError(PaymentProviderError):
    """Raised when the payment provider cannot be reached."""

    def __init__(self, message: str = "Payment provider unreachable") -> None:
        super().__init__(message)


class CurrencyMismatchError(PaymentProviderError):
    """Raised when invoice and customer currencies don't match."""

    def __init__(self, invoice_id: int, customer_id: int) -> None:
        self.invoice_id = invoice_id
        self.customer_id = customer_id
        super().__init__(f"Currency of invoice {invoice_id} does not match currency of customer {customer_id}")
