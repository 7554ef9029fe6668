"""
Payment API endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lab_billing.api.deps import get_actor
from lab_billing.models.base import atomic, get_db
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.invoice import InvoiceResponse
from lab_billing.schemas.payment import PaymentUpdate, OverdueSweepResponse
from lab_billing.services.payment_service import PaymentService
from lab_billing.services.permissions import require_privileged

router = APIRouter(tags=["Payments"])


@router.put("/invoices/{invoice_id}/payment", response_model=InvoiceResponse)
def update_payment(
    invoice_id: int,
    request: PaymentUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Record the cumulative amount paid; the payment status is derived."""
    with atomic(db):
        invoice = PaymentService(db).update_payment(invoice_id, request, actor)
    return invoice


@router.post("/payments/sweep-overdue", response_model=OverdueSweepResponse)
def sweep_overdue(
    as_of: date | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Run the overdue sweep on demand. Normally scheduled via lab-billing-sweep."""
    require_privileged(actor, "run the overdue sweep")
    as_of = as_of or date.today()
    with atomic(db):
        moved = PaymentService(db).sweep_overdue(as_of=as_of)
    return OverdueSweepResponse(as_of=as_of, marked_overdue=moved)
