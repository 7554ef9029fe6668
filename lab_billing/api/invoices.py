"""
Invoice API endpoints: generation, reads and status transitions.

Every mutating route runs its service call inside atomic(db),
which commits on success and rolls back on any error. Domain
errors are rendered by the handlers registered in main.py.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lab_billing.api.deps import get_actor
from lab_billing.models.base import atomic, get_db
from lab_billing.models.enums import InvoiceStatus, PaymentStatus
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.invoice import (
    InvoiceGenerate,
    InvoiceResponse,
    InvoiceDetailResponse,
    EligibleOrderResponse,
)
from lab_billing.services.invoice_generator import InvoiceGenerator
from lab_billing.services.invoice_query_service import InvoiceQueryService
from lab_billing.services.invoice_state_machine import InvoiceStateMachine

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceDetailResponse, status_code=201)
def generate_invoice(
    request: InvoiceGenerate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Generate the invoice for a delivered, confirmed order."""
    with atomic(db):
        invoice = InvoiceGenerator(db).generate(request.order_id, actor)
    return InvoiceQueryService(db).get_invoice_detail(invoice.id)


@router.get("", response_model=list[InvoiceResponse])
def list_invoices(
    status: InvoiceStatus | None = None,
    payment_status: PaymentStatus | None = None,
    db: Session = Depends(get_db),
):
    """List invoices, newest first."""
    return InvoiceQueryService(db).list_invoices(
        status=status, payment_status=payment_status
    )


# Declared before /{invoice_id} so the literal path wins
@router.get("/eligible-orders", response_model=list[EligibleOrderResponse])
def list_eligible_orders(db: Session = Depends(get_db)):
    """Orders that are delivered, confirmed and not yet invoiced."""
    return InvoiceQueryService(db).list_eligible_orders()


@router.get("/by-order/{order_id}", response_model=InvoiceDetailResponse)
def get_invoice_for_order(order_id: int, db: Session = Depends(get_db)):
    return InvoiceQueryService(db).get_invoice_for_order(order_id)


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    """Invoice with line items, adjustments, expenses and audit trail."""
    return InvoiceQueryService(db).get_invoice_detail(invoice_id)


@router.post("/{invoice_id}/lock", response_model=InvoiceResponse)
def lock_invoice(
    invoice_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    with atomic(db):
        invoice = InvoiceStateMachine(db).lock(invoice_id, actor)
    return invoice


@router.post("/{invoice_id}/finalize", response_model=InvoiceResponse)
def finalize_invoice(
    invoice_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    with atomic(db):
        invoice = InvoiceStateMachine(db).finalize(invoice_id, actor)
    return invoice
