import asyncio

import structlog

from billing_service.api.app import create_app
from billing_service.api.server import ApiServer
from billing_service.application.billing import BillingService
from billing_service.config import settings
from billing_service.infrastructure.database import Database
from billing_service.infrastructure.ledger import PaymentLedger
from billing_service.infrastructure.payment_provider import SimulatedPaymentProvider
from billing_service.logging import configure_logging


logger = structlog.get_logger()


async def main() -> None:
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
    )

    logger.info(
        "starting_billing_service",
        http_port=settings.http_port,
        log_level=settings.log_level,
        metrics_enabled=settings.metrics_enabled,
        billing_max_concurrency=settings.billing_max_concurrency,
    )

    database = Database(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        connect_timeout=settings.database_connect_timeout_seconds,
    )
    if settings.create_schema_on_startup:
        await database.create_schema()

    ledger = PaymentLedger(database)
    payment_provider = SimulatedPaymentProvider(
        success_rate=settings.provider_success_rate,
        network_failure_rate=settings.provider_network_failure_rate,
        customer_lookup=ledger.fetch_customer,
    )
    billing_service = BillingService(
        ledger=ledger,
        payment_provider=payment_provider,
        max_concurrency=settings.billing_max_concurrency,
    )

    server = ApiServer(
        create_app(ledger, billing_service, metrics_enabled=settings.metrics_enabled),
        host=settings.http_host,
        port=settings.http_port,
    )

    # uvicorn handles SIGINT/SIGTERM and returns from serve()
    try:
        await server.start()
        await server.wait_for_termination()
    finally:
        logger.info("shutting_down")
        await server.stop()
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
