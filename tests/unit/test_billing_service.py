"""Unit tests for BillingService with a mocked ledger and payment provider."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import REGISTRY

from billing_service.application.billing import BillingService
from billing_service.domain.exceptions import InvoiceNotFoundError, NetworkError, StorageError
from billing_service.domain.models import ChargeResult, ChargeResultStatus, Invoice, InvoiceStatus


def charge_results_count(status: ChargeResultStatus) -> float:
    return REGISTRY.get_sample_value("invoice_charge_results_total", {"status": status.value}) or 0.0


class TestChargeInvoice:
    """Tests for BillingService.charge_invoice."""

    @pytest.fixture
    def service(self, mock_ledger: AsyncMock, mock_payment_provider: AsyncMock) -> BillingService:
        return BillingService(mock_ledger, mock_payment_provider, max_concurrency=4)

    @pytest.mark.asyncio
    async def test_pending_invoice_charged_is_paid(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        invoice = make_invoice(1)
        mock_ledger.fetch_invoice.return_value = invoice
        mock_ledger.claim_payment.return_value = True
        mock_ledger.confirm_paid.return_value = True

        result = await service.charge_invoice(1)

        assert result == ChargeResult(invoice_id=1, status=ChargeResultStatus.PAID)
        mock_ledger.claim_payment.assert_awaited_once_with(1)
        mock_payment_provider.charge.assert_awaited_once_with(invoice)
        mock_ledger.confirm_paid.assert_awaited_once_with(1)
        mock_ledger.release_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invoice_in_progress_fails_as_concurrent(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1, status=InvoiceStatus.IN_PROGRESS)
        mock_ledger.claim_payment.return_value = False

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.FAILED_CONCURRENT_PAYMENT
        mock_payment_provider.charge.assert_not_awaited()
        mock_ledger.confirm_paid.assert_not_awaited()
        mock_ledger.release_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paid_invoice_fails_as_concurrent(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1, status=InvoiceStatus.PAID)
        mock_ledger.claim_payment.return_value = False

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.FAILED_CONCURRENT_PAYMENT
        mock_payment_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_invoice_raises_not_found(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        with pytest.raises(InvoiceNotFoundError) as exc_info:
            await service.charge_invoice(404)

        assert exc_info.value.entity_id == 404
        mock_ledger.claim_payment.assert_not_awaited()
        mock_payment_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_charge_releases_attempt(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_ledger.release_failed.return_value = True
        mock_payment_provider.charge.return_value = False

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.FAILED_REJECTED
        mock_ledger.release_failed.assert_awaited_once_with(1)
        mock_ledger.confirm_paid.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_leaves_attempt_started(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_payment_provider.charge.side_effect = NetworkError()

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.UNKNOWN
        mock_ledger.confirm_paid.assert_not_awaited()
        mock_ledger.release_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_provider_exception_is_unknown(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_payment_provider.charge.side_effect = RuntimeError("connection reset")

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.UNKNOWN
        mock_ledger.release_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_in_progress_invoice_with_failing_provider_is_concurrent(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1, status=InvoiceStatus.IN_PROGRESS)
        mock_ledger.claim_payment.return_value = False
        mock_payment_provider.charge.side_effect = NetworkError()

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.FAILED_CONCURRENT_PAYMENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [None, "true", 1, 0])
    async def test_ambiguous_provider_response_is_unknown(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
        response: object,
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_payment_provider.charge.return_value = response

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.UNKNOWN
        mock_ledger.confirm_paid.assert_not_awaited()
        mock_ledger.release_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paid_even_when_confirmation_finds_no_started_attempt(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        """The customer was charged, so the result stays PAID."""
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_ledger.confirm_paid.return_value = False

        result = await service.charge_invoice(1)

        assert result.status == ChargeResultStatus.PAID

    @pytest.mark.asyncio
    async def test_storage_error_on_claim_propagates(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.side_effect = StorageError("database is locked")

        with pytest.raises(StorageError):
            await service.charge_invoice(1)

        mock_payment_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_error_on_confirmation_propagates(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_ledger.confirm_paid.side_effect = StorageError("connection lost")

        with pytest.raises(StorageError):
            await service.charge_invoice(1)

        mock_payment_provider.charge.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_result_is_counted_by_status(
        self,
        service: BillingService,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        mock_ledger.fetch_invoice.return_value = make_invoice(1)
        mock_ledger.claim_payment.return_value = True
        mock_payment_provider.charge.return_value = False
        before = charge_results_count(ChargeResultStatus.FAILED_REJECTED)

        await service.charge_invoice(1)

        assert charge_results_count(ChargeResultStatus.FAILED_REJECTED) == before + 1


class TestChargePendingInvoices:
    """Tests for BillingService.charge_pending_invoices."""

    @pytest.fixture
    def invoices(self, make_invoice: Callable[..., Invoice]) -> list[Invoice]:
        return [make_invoice(invoice_id) for invoice_id in (1, 2, 3)]

    @pytest.fixture
    def pending_ledger(self, mock_ledger: AsyncMock, invoices: list[Invoice]) -> AsyncMock:
        by_id = {invoice.id: invoice for invoice in invoices}
        mock_ledger.fetch_pending_invoices.return_value = invoices
        mock_ledger.fetch_invoice.side_effect = lambda invoice_id: by_id.get(invoice_id)
        mock_ledger.claim_payment.return_value = True
        mock_ledger.confirm_paid.return_value = True
        return mock_ledger

    @pytest.mark.asyncio
    async def test_charges_every_pending_invoice(
        self,
        pending_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        service = BillingService(pending_ledger, mock_payment_provider, max_concurrency=2)

        results = await service.charge_pending_invoices()

        assert results == [ChargeResult(invoice_id=i, status=ChargeResultStatus.PAID) for i in (1, 2, 3)]
        assert mock_payment_provider.charge.await_count == 3

    @pytest.mark.asyncio
    async def test_no_pending_invoices(self, mock_ledger: AsyncMock, mock_payment_provider: AsyncMock) -> None:
        service = BillingService(mock_ledger, mock_payment_provider)

        assert await service.charge_pending_invoices() == []
        mock_payment_provider.charge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_one_invoice_storage_error_does_not_stop_the_run(
        self,
        pending_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        async def claim(invoice_id: int) -> bool:
            if invoice_id == 2:
                raise StorageError("deadlock detected")
            return True

        pending_ledger.claim_payment.side_effect = claim
        service = BillingService(pending_ledger, mock_payment_provider)
        before = REGISTRY.get_sample_value("invoice_charge_errors_total", {"error_type": "StorageError"}) or 0.0

        results = await service.charge_pending_invoices()

        assert [result.invoice_id for result in results] == [1, 3]
        assert all(result.status == ChargeResultStatus.PAID for result in results)
        after = REGISTRY.get_sample_value("invoice_charge_errors_total", {"error_type": "StorageError"})
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_mixed_outcomes_are_all_reported(
        self,
        pending_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        async def charge(invoice: Invoice) -> bool:
            if invoice.id == 2:
                return False
            if invoice.id == 3:
                raise NetworkError()
            return True

        mock_payment_provider.charge.side_effect = charge
        pending_ledger.release_failed.return_value = True
        service = BillingService(pending_ledger, mock_payment_provider)

        results = await service.charge_pending_invoices()

        assert [result.status for result in results] == [
            ChargeResultStatus.PAID,
            ChargeResultStatus.FAILED_REJECTED,
            ChargeResultStatus.UNKNOWN,
        ]

    @pytest.mark.asyncio
    async def test_enumeration_failure_propagates(
        self,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        mock_ledger.fetch_pending_invoices.side_effect = StorageError("connection refused")
        service = BillingService(mock_ledger, mock_payment_provider)

        with pytest.raises(StorageError):
            await service.charge_pending_invoices()

    @pytest.mark.asyncio
    async def test_respects_max_concurrency(
        self,
        mock_ledger: AsyncMock,
        make_invoice: Callable[..., Invoice],
    ) -> None:
        invoices = [make_invoice(invoice_id) for invoice_id in range(1, 9)]
        by_id = {invoice.id: invoice for invoice in invoices}
        mock_ledger.fetch_pending_invoices.return_value = invoices
        mock_ledger.fetch_invoice.side_effect = lambda invoice_id: by_id[invoice_id]
        mock_ledger.claim_payment.return_value = True
        mock_ledger.confirm_paid.return_value = True

        in_flight = 0
        peak = 0

        class SlowProvider:
            async def charge(self, invoice: Invoice) -> bool:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return True

        service = BillingService(mock_ledger, SlowProvider(), max_concurrency=3)

        results = await service.charge_pending_invoices()

        assert len(results) == 8
        assert peak == 3

    @pytest.mark.asyncio
    async def test_sets_pending_invoices_gauge(
        self,
        pending_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
    ) -> None:
        service = BillingService(pending_ledger, mock_payment_provider)

        await service.charge_pending_invoices()

        assert REGISTRY.get_sample_value("billing_run_pending_invoices") == 3.0


class TestBillingServiceConfiguration:
    def test_defaults_to_configured_concurrency(self, mock_ledger: AsyncMock, mock_payment_provider: AsyncMock) -> None:
        with patch("billing_service.application.billing.settings") as mock_settings:
            mock_settings.billing_max_concurrency = 7

            service = BillingService(mock_ledger, mock_payment_provider)

        assert service._max_concurrency == 7

    @pytest.mark.parametrize("max_concurrency", [0, -1])
    def test_rejects_non_positive_concurrency(
        self,
        mock_ledger: AsyncMock,
        mock_payment_provider: AsyncMock,
        max_concurrency: int,
    ) -> None:
        with pytest.raises(ValueError, match="max_concurrency"):
            BillingService(mock_ledger, mock_payment_provider, max_concurrency=max_concurrency)
