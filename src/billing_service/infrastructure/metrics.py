import time
from collections.abc import Awaitable, Callable
from functools import wraps

from prometheus_client import Counter, Gauge, Histogram


CHARGE_RESULTS_TOTAL = Counter(
    "invoice_charge_results_total",
    "Total number of invoice charge attempts by outcome",
    ["status"],
)

CHARGE_ERRORS_TOTAL = Counter(
    "invoice_charge_errors_total",
    "Total number of invoice charges that raised instead of producing an outcome",
    ["error_type"],
)

CHARGE_DURATION_SECONDS = Histogram(
    "invoice_charge_duration_seconds",
    "Invoice charge protocol duration",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

BILLING_RUN_INVOICES = Gauge(
    "billing_run_pending_invoices",
    "Number of pending invoices picked up by the last billing run",
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)


def track_charge_duration[**P, R](
    func: Callable[P, Awaitable[R]],
) -> Callable[P, Awaitable[R]]:
    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration = time.perf_counter() - start
            CHARGE_DURATION_SECONDS.observe(duration)

    return wrapper
