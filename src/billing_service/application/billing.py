import asyncio

import structlog

from billing_service.application.payment_provider import PaymentProvider
from billing_service.config import settings
from billing_service.domain.exceptions import InvoiceNotFoundError
from billing_service.domain.models import ChargeResult, ChargeResultStatus, Invoice
from billing_service.infrastructure.ledger import PaymentLedger
from billing_service.infrastructure.metrics import (
    BILLING_RUN_INVOICES,
    CHARGE_ERRORS_TOTAL,
    CHARGE_RESULTS_TOTAL,
    track_charge_duration,
)


logger = structlog.get_logger()


class BillingService:
    """
    Charges invoices through the payment provider.

    Charge protocol for one invoice:
    1. Claim the invoice in the ledger. A lost claim means another attempt is
       in flight or the invoice is already paid.
    2. Call the provider exactly once.
    3. Record the outcome: confirmed charge -> PAID, rejection -> attempt
       released so the invoice can be charged again.

    When the provider raises or answers ambiguously the customer may have been
    charged, so the attempt is left STARTED for manual reconciliation and the
    result is UNKNOWN. Nothing here retries an UNKNOWN outcome.
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        payment_provider: PaymentProvider,
        max_concurrency: int | None = None,
    ) -> None:
        self._ledger = ledger
        self._payment_provider = payment_provider
        if max_concurrency is None:
            max_concurrency = settings.billing_max_concurrency
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency

    @track_charge_duration
    async def charge_invoice(self, invoice_id: int) -> ChargeResult:
        log = logger.bind(invoice_id=invoice_id)

        invoice = await self._ledger.fetch_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        if not await self._ledger.claim_payment(invoice_id):
            log.info("charge_claim_lost", invoice_status=invoice.status.value)
            return self._result(invoice_id, ChargeResultStatus.FAILED_CONCURRENT_PAYMENT)

        log = log.bind(
            customer_id=invoice.customer_id,
            amount=str(invoice.amount.value),
            currency=invoice.amount.currency.value,
        )
        log.info("charge_started")

        try:
            charged = await self._payment_provider.charge(invoice)
        except Exception as e:
            log.error(
                "charge_outcome_unknown",
                reason="provider_error",
                error=str(e),
                error_type=type(e).__name__,
                action="manual_review_required",
            )
            return self._result(invoice_id, ChargeResultStatus.UNKNOWN)

        if not isinstance(charged, bool):
            log.error(
                "charge_outcome_unknown",
                reason="ambiguous_response",
                response=repr(charged),
                action="manual_review_required",
            )
            return self._result(invoice_id, ChargeResultStatus.UNKNOWN)

        if charged:
            if not await self._ledger.confirm_paid(invoice_id):
                log.warning("charge_confirmation_not_recorded")
            log.info("charge_paid")
            return self._result(invoice_id, ChargeResultStatus.PAID)

        if not await self._ledger.release_failed(invoice_id):
            log.warning("charge_release_not_recorded")
        log.info("charge_rejected")
        return self._result(invoice_id, ChargeResultStatus.FAILED_REJECTED)

    async def charge_pending_invoices(self) -> list[ChargeResult]:
        invoices = await self._ledger.fetch_pending_invoices()
        BILLING_RUN_INVOICES.set(len(invoices))
        logger.info(
            "billing_run_started",
            pending_invoices=len(invoices),
            max_concurrency=self._max_concurrency,
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)
        outcomes = await asyncio.gather(*(self._charge_isolated(invoice, semaphore) for invoice in invoices))
        results = [result for result in outcomes if result is not None]

        logger.info(
            "billing_run_completed",
            pending_invoices=len(invoices),
            charged=len(results),
            errors=len(invoices) - len(results),
        )
        return results

    async def _charge_isolated(self, invoice: Invoice, semaphore: asyncio.Semaphore) -> ChargeResult | None:
        async with semaphore:
            try:
                return await self.charge_invoice(invoice.id)
            except Exception as e:
                CHARGE_ERRORS_TOTAL.labels(error_type=type(e).__name__).inc()
                logger.error(
                    "charge_invoice_failed",
                    invoice_id=invoice.id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return None

    @staticmethod
    def _result(invoice_id: int, status: ChargeResultStatus) -> ChargeResult:
        CHARGE_RESULTS_TOTAL.labels(status=status.value).inc()
        return ChargeResult(invoice_id=invoice_id, status=status)
