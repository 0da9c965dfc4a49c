import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from billing_service.api.schemas import (
    ChargeResultResponse,
    CustomerResponse,
    ErrorResponse,
    InvoicePaymentResponse,
    InvoiceResponse,
    ResolvePaymentRequest,
    ResolvePaymentResponse,
)
from billing_service.application.billing import BillingService
from billing_service.application.services import (
    CustomerService,
    InvoiceService,
    PaymentReconciliationService,
    ResolutionOutcome,
)
from billing_service.domain.exceptions import (
    EntityNotFoundError,
    PaymentResolutionError,
    StorageError,
)
from billing_service.domain.models import InvoicePaymentStatus
from billing_service.infrastructure.ledger import PaymentLedger
from billing_service.infrastructure.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL


logger = structlog.get_logger()


def create_app(
    ledger: PaymentLedger,
    billing_service: BillingService,
    metrics_enabled: bool = True,
) -> FastAPI:
    """Create the billing REST API, including health and metrics endpoints."""
    app = FastAPI(title="Invoice Billing Service")

    invoice_service = InvoiceService(ledger)
    customer_service = CustomerService(ledger)
    reconciliation_service = PaymentReconciliationService(ledger)

    @app.middleware("http")
    async def record_metrics(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start_time = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", "unmatched")
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION.labels(method=request.method, path=path, status_code=status_code).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status_code=status_code).inc()

    @app.exception_handler(EntityNotFoundError)
    async def not_found(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=ErrorResponse(detail=str(exc)).model_dump())

    @app.exception_handler(PaymentResolutionError)
    async def resolution_conflict(request: Request, exc: PaymentResolutionError) -> JSONResponse:
        return JSONResponse(status_code=409, content=ErrorResponse(detail=str(exc)).model_dump())

    @app.exception_handler(StorageError)
    async def storage_unavailable(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("request_storage_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content=ErrorResponse(detail="Storage unavailable").model_dump())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    if metrics_enabled:

        @app.get("/metrics", response_class=PlainTextResponse)
        async def metrics() -> PlainTextResponse:
            return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/rest/v1/invoices", response_model=list[InvoiceResponse])
    async def list_invoices() -> list[InvoiceResponse]:
        return [InvoiceResponse.from_domain(invoice) for invoice in await invoice_service.fetch_all()]

    @app.get("/rest/v1/invoices/{invoice_id}", response_model=InvoiceResponse)
    async def get_invoice(invoice_id: int) -> InvoiceResponse:
        return InvoiceResponse.from_domain(await invoice_service.fetch(invoice_id))

    @app.get("/rest/v1/invoices/{invoice_id}/payment", response_model=InvoicePaymentResponse)
    async def get_invoice_payment(invoice_id: int) -> InvoicePaymentResponse:
        return InvoicePaymentResponse.from_domain(await invoice_service.fetch_payment(invoice_id))

    @app.get("/rest/v1/payments", response_model=list[InvoicePaymentResponse])
    async def list_payments(status: InvoicePaymentStatus | None = None) -> list[InvoicePaymentResponse]:
        payments = await invoice_service.fetch_all_payments(status)
        return [InvoicePaymentResponse.from_domain(payment) for payment in payments]

    @app.get("/rest/v1/customers", response_model=list[CustomerResponse])
    async def list_customers() -> list[CustomerResponse]:
        return [CustomerResponse.from_domain(customer) for customer in await customer_service.fetch_all()]

    @app.get("/rest/v1/customers/{customer_id}", response_model=CustomerResponse)
    async def get_customer(customer_id: int) -> CustomerResponse:
        return CustomerResponse.from_domain(await customer_service.fetch(customer_id))

    @app.post("/rest/v1/invoices/{invoice_id}/charge", response_model=ChargeResultResponse)
    async def charge_invoice(invoice_id: int) -> ChargeResultResponse:
        return ChargeResultResponse.from_domain(await billing_service.charge_invoice(invoice_id))

    @app.post("/rest/v1/billing/charge-pending", response_model=list[ChargeResultResponse])
    async def charge_pending_invoices() -> list[ChargeResultResponse]:
        results = await billing_service.charge_pending_invoices()
        return [ChargeResultResponse.from_domain(result) for result in results]

    @app.post("/rest/v1/invoices/{invoice_id}/payment/resolve", response_model=ResolvePaymentResponse)
    async def resolve_payment(invoice_id: int, body: ResolvePaymentRequest) -> ResolvePaymentResponse:
        payment = await reconciliation_service.resolve(invoice_id, ResolutionOutcome(body.outcome))
        return ResolvePaymentResponse(
            invoice_id=invoice_id,
            outcome=body.outcome,
            payment=InvoicePaymentResponse.from_domain(payment) if payment else None,
        )

    return app
