#!/usr/bin/env python3
"""Billing run entrypoint script.

Charges every pending invoice once and exits. Meant to be triggered by an
external scheduler (cron, Kubernetes CronJob) at the start of each billing
period. Invoices left IN_PROGRESS by an unknown charge outcome are not
pending and are never picked up again; resolve them through the
reconciliation endpoint.
"""
import asyncio
import sys
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from billing_service.application.billing import BillingService
from billing_service.config import settings
from billing_service.domain.models import ChargeResultStatus
from billing_service.infrastructure.database import Database
from billing_service.infrastructure.ledger import PaymentLedger
from billing_service.infrastructure.payment_provider import SimulatedPaymentProvider
from billing_service.logging import configure_logging


logger = structlog.get_logger()


async def main() -> int:
    """Run one billing pass. Exit code 1 if any charge ended UNKNOWN."""
    configure_logging(level=settings.log_level, log_format=settings.log_format)

    logger.info(
        "billing_run_starting",
        database_url=settings.database_url.split("@")[-1],
        max_concurrency=settings.billing_max_concurrency,
    )

    database = Database(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        connect_timeout=settings.database_connect_timeout_seconds,
    )
    try:
        ledger = PaymentLedger(database)
        billing_service = BillingService(
            ledger=ledger,
            payment_provider=SimulatedPaymentProvider(
                success_rate=settings.provider_success_rate,
                network_failure_rate=settings.provider_network_failure_rate,
                customer_lookup=ledger.fetch_customer,
            ),
            max_concurrency=settings.billing_max_concurrency,
        )
        results = await billing_service.charge_pending_invoices()
    finally:
        await database.close()

    summary = Counter(result.status.value for result in results)
    logger.info("billing_run_summary", **summary)

    return 1 if summary[ChargeResultStatus.UNKNOWN.value] else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
