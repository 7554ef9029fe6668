"""
Lab Billing Ledger: FastAPI application.

This is the entry point for the application.
All routers and exception handlers are registered here.
"""

from fastapi import FastAPI

from lab_billing.config import get_settings
from lab_billing.exceptions import (
    BillingError,
    InternalError,
    billing_error_handler,
    internal_error_handler,
)
from lab_billing.logging_config import configure_logging
from lab_billing.api.health import router as health_router
from lab_billing.api.invoices import router as invoices_router
from lab_billing.api.ledger import router as ledger_router
from lab_billing.api.payments import router as payments_router
from lab_billing.api.disputes import router as disputes_router
from lab_billing.api.invoice_requests import router as invoice_requests_router

settings = get_settings()

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Auditable invoice-per-order billing ledger for a dental lab platform",
    debug=settings.DEBUG,
)

# Domain errors carry their own status code; everything else is a 500
app.add_exception_handler(BillingError, billing_error_handler)
app.add_exception_handler(InternalError, internal_error_handler)
app.add_exception_handler(Exception, internal_error_handler)

# Register routers
app.include_router(health_router)
app.include_router(invoices_router)
app.include_router(ledger_router)
app.include_router(payments_router)
app.include_router(disputes_router)
app.include_router(invoice_requests_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lab_billing.main:app", host=settings.HOST, port=settings.PORT)
