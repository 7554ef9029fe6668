"""
Invoice request API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lab_billing.api.deps import get_actor
from lab_billing.models.base import atomic, get_db
from lab_billing.models.enums import InvoiceRequestStatus
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.invoice_request import (
    InvoiceRequestCreate,
    InvoiceRequestReject,
    InvoiceRequestResponse,
)
from lab_billing.services.invoice_request_service import InvoiceRequestService

router = APIRouter(prefix="/invoice-requests", tags=["Invoice Requests"])


@router.post("", response_model=InvoiceRequestResponse, status_code=201)
def request_invoice(
    request: InvoiceRequestCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Ask for the invoice of a delivered order. Ordering doctor only."""
    with atomic(db):
        invoice_request = InvoiceRequestService(db).request_invoice(request, actor)
    return invoice_request


@router.get("", response_model=list[InvoiceRequestResponse])
def list_requests(
    status: InvoiceRequestStatus | None = None,
    db: Session = Depends(get_db),
):
    return InvoiceRequestService(db).list_requests(status=status)


@router.post("/{request_id}/approve", response_model=InvoiceRequestResponse)
def approve_request(
    request_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Generate the invoice for a pending request."""
    with atomic(db):
        invoice_request = InvoiceRequestService(db).approve_request(request_id, actor)
    return invoice_request


@router.post("/{request_id}/reject", response_model=InvoiceRequestResponse)
def reject_request(
    request_id: int,
    request: InvoiceRequestReject,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    with atomic(db):
        invoice_request = InvoiceRequestService(db).reject_request(
            request_id, request.reason, actor
        )
    return invoice_request
