from typing import Protocol

from billing_service.domain.models import Invoice


class PaymentProvider(Protocol):
    """External capability that charges a customer for an invoice.

    ``charge`` returns True when the customer was charged and False when the
    provider rejected the charge (for example, insufficient funds). Any raised
    exception means the outcome is unknown: the customer may or may not have
    been charged.
    """

    async def charge(self, invoice: Invoice) -> bool: ...
