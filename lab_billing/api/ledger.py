"""
Ledger API endpoints: adjustments and logistics expenses.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lab_billing.api.deps import get_actor
from lab_billing.models.base import atomic, get_db
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.invoice import AdjustmentResponse, ExpenseResponse
from lab_billing.schemas.ledger import AdjustmentCreate, ExpenseCreate
from lab_billing.services.ledger_service import LedgerService

router = APIRouter(tags=["Ledger"])


@router.post(
    "/invoices/{invoice_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=201,
)
def add_adjustment(
    invoice_id: int,
    request: AdjustmentCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Add a signed adjustment to a locked invoice.

    Admins only. The reason must be at least 10 characters.
    """
    with atomic(db):
        adjustment = LedgerService(db).add_adjustment(invoice_id, request, actor)
    return adjustment


@router.post("/expenses", response_model=ExpenseResponse, status_code=201)
def add_expense(
    request: ExpenseCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Record a logistics expense against an order or an invoice."""
    with atomic(db):
        expense = LedgerService(db).add_expense(request, actor)
    return expense
