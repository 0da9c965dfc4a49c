import asyncio
import random
from collections.abc import Awaitable, Callable

import structlog

from billing_service.domain.exceptions import CurrencyMismatchError, NetworkError
from billing_service.domain.models import Customer, Invoice


logger = structlog.get_logger()

CustomerLookup = Callable[[int], Awaitable[Customer | None]]


class SimulatedPaymentProvider:
    """Payment provider stand-in with random outcomes, for local runs.

    With a ``customer_lookup`` the provider refuses invoices billed in a
    currency other than the customer's account currency, raising
    CurrencyMismatchError the way a real provider rejects such a charge.
    """

    def __init__(
        self,
        success_rate: float = 0.9,
        network_failure_rate: float = 0.0,
        latency_seconds: float = 0.05,
        rng: random.Random | None = None,
        customer_lookup: CustomerLookup | None = None,
    ) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        if not 0.0 <= network_failure_rate <= 1.0:
            raise ValueError("network_failure_rate must be between 0 and 1")
        self._success_rate = success_rate
        self._network_failure_rate = network_failure_rate
        self._latency_seconds = latency_seconds
        self._rng = rng or random.Random()
        self._customer_lookup = customer_lookup

    async def charge(self, invoice: Invoice) -> bool:
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

        if self._rng.random() < self._network_failure_rate:
            logger.warning("simulated_network_failure", invoice_id=invoice.id)
            raise NetworkError()

        if self._customer_lookup is not None:
            customer = await self._customer_lookup(invoice.customer_id)
            if customer is not None and customer.currency != invoice.amount.currency:
                raise CurrencyMismatchError(invoice.id, invoice.customer_id)

        return self._rng.random() < self._success_rate
