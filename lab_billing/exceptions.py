"""
Billing error taxonomy and the FastAPI handlers that render it.

Every domain error is a BillingError carrying a machine-readable
error_code, the HTTP status it maps to, and a details dict naming
the invariant or field that was violated. All of them are
recoverable: the caller fixes the input and retries.

InternalError is deliberately NOT a BillingError. It marks a
failure of the storage layer itself; the operation was rolled
back and the caller should simply try again.
"""

from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from lab_billing.logging_config import get_logger

logger = get_logger("errors")

GENERIC_FAILURE_MESSAGE = "Operation failed, try again"


class BillingError(Exception):
    """Base class for caller-visible billing errors."""

    error_code = "ERR_BILLING"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# --- Not found ---

class NotFoundError(BillingError):
    error_code = "ERR_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    resource = "Resource"

    def __init__(self, resource_id: Any):
        super().__init__(
            f"{self.resource} {resource_id} not found",
            details={"resource": self.resource.lower(), "id": resource_id},
        )


class InvoiceNotFound(NotFoundError):
    resource = "Invoice"


class OrderNotFound(NotFoundError):
    resource = "Order"


class InvoiceRequestNotFound(NotFoundError):
    resource = "Invoice request"


# --- Generation ---

class NotEligible(BillingError):
    """The order is not delivered and delivery-confirmed."""
    error_code = "ERR_NOT_ELIGIBLE"
    status_code = status.HTTP_409_CONFLICT


class AlreadyExists(BillingError):
    """An invoice (or pending request) already exists for the order."""
    error_code = "ERR_ALREADY_EXISTS"
    status_code = status.HTTP_409_CONFLICT


class NoPriceConfigured(BillingError):
    """Neither lab pricing nor a platform template prices the order."""
    error_code = "ERR_NO_PRICE"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


# --- State machine ---

class InvalidStatus(BillingError):
    """The invoice's current status does not permit the operation."""
    error_code = "ERR_INVALID_STATUS"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(BillingError):
    """The requested status transition is not legal from the current state."""
    error_code = "ERR_INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class Forbidden(BillingError):
    """The acting user's role may not perform the operation."""
    error_code = "ERR_FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


# --- Ledger and payments ---

class InvalidReason(BillingError):
    error_code = "ERR_INVALID_REASON"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidAmount(BillingError):
    error_code = "ERR_INVALID_AMOUNT"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class OverpaymentRejected(BillingError):
    error_code = "ERR_OVERPAYMENT"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


# --- Disputes ---

class AlreadyDisputed(BillingError):
    error_code = "ERR_ALREADY_DISPUTED"
    status_code = status.HTTP_409_CONFLICT


class InternalError(Exception):
    """The storage layer failed; nothing was applied."""

    error_code = "ERR_INTERNAL"


# --- Exception handlers ---

async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Render a domain error with its code and details."""
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        }),
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render storage failures and anything unexpected as a generic 500."""
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": InternalError.error_code,
            "message": GENERIC_FAILURE_MESSAGE,
            "details": {},
        },
    )
