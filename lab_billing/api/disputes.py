"""
Dispute API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lab_billing.api.deps import get_actor
from lab_billing.models.base import atomic, get_db
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.dispute import DisputeRaise, DisputeResolve
from lab_billing.schemas.invoice import InvoiceResponse
from lab_billing.services.dispute_service import DisputeService

router = APIRouter(prefix="/invoices/{invoice_id}/dispute", tags=["Disputes"])


@router.post("", response_model=InvoiceResponse)
def raise_dispute(
    invoice_id: int,
    request: DisputeRaise,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Dispute a generated or locked invoice. Parties to the order only."""
    with atomic(db):
        invoice = DisputeService(db).raise_dispute(invoice_id, request, actor)
    return invoice


@router.post("/resolve", response_model=InvoiceResponse)
def resolve_dispute(
    invoice_id: int,
    request: DisputeResolve,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Resolve a dispute as accepted, rejected or adjusted. Admins only."""
    with atomic(db):
        invoice = DisputeService(db).resolve_dispute(invoice_id, request, actor)
    return invoice
