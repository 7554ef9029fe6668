"""
Payment tracking.

Payment status runs on its own axis, independent of the invoice
status. It is always derived from the amount paid, the final
total and the due date; callers never choose it directly.

The overdue sweep is the only background job in the ledger. It
only ever moves pending or partial invoices to overdue, with a
guarded UPDATE, so it is safe to re-run and to run alongside
ordinary requests.
"""

import argparse
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from lab_billing.config import get_settings
from lab_billing.exceptions import InvalidStatus, InvalidAmount, OverpaymentRejected
from lab_billing.logging_config import configure_logging, get_logger
from lab_billing.models.base import SessionLocal, atomic
from lab_billing.models.enums import AuditAction, InvoiceStatus, PaymentStatus
from lab_billing.models.invoice import Invoice
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.payment import PaymentUpdate
from lab_billing.services.audit_service import AuditService
from lab_billing.services.ledger_service import (
    LedgerService,
    derive_payment_status,
    to_money,
)
from lab_billing.services.permissions import require_privileged

logger = get_logger("services.payment")

PAYABLE_STATUSES = frozenset({
    InvoiceStatus.GENERATED,
    InvoiceStatus.LOCKED,
    InvoiceStatus.FINALIZED,
})

SWEEPABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PARTIAL)


class PaymentService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit_service = AuditService(db)

    def update_payment(
        self,
        invoice_id: int,
        request: PaymentUpdate,
        actor: Actor,
        today: date | None = None,
    ) -> Invoice:
        """
        Record the cumulative amount paid on an invoice.

        Allowed while generated, locked or finalized. Overpayment is
        rejected rather than recorded as a credit.
        """
        require_privileged(actor, "record payments")
        today = today or date.today()

        invoice = self.ledger_service.get_invoice_for_update(invoice_id)
        if invoice.status not in PAYABLE_STATUSES:
            raise InvalidStatus(
                f"Payments cannot be recorded while invoice "
                f"{invoice.invoice_number} is {invoice.status.value}",
                details={
                    "invoice_id": invoice.id,
                    "status": invoice.status.value,
                    "allowed_statuses": sorted(s.value for s in PAYABLE_STATUSES),
                },
            )

        amount_paid = to_money(request.amount_paid)
        if amount_paid < 0:
            raise InvalidAmount(
                "Amount paid cannot be negative",
                details={"field": "amount_paid", "value": str(amount_paid)},
            )
        if amount_paid > invoice.final_total:
            raise OverpaymentRejected(
                f"Amount paid {amount_paid} exceeds invoice total {invoice.final_total}",
                details={
                    "field": "amount_paid",
                    "amount_paid": str(amount_paid),
                    "final_total": str(invoice.final_total),
                },
            )

        before = {
            "amount_paid": invoice.amount_paid,
            "payment_status": invoice.payment_status,
            "due_date": invoice.due_date,
        }

        if request.due_date is not None:
            invoice.due_date = request.due_date
        invoice.amount_paid = amount_paid
        new_status = derive_payment_status(invoice, amount_paid, today)
        if new_status == PaymentStatus.PAID and invoice.payment_received_at is None:
            invoice.payment_received_at = datetime.utcnow()
        invoice.payment_status = new_status
        self.db.flush()

        self.audit_service.record(
            invoice,
            AuditAction.PAYMENT_UPDATED,
            actor.user_id,
            old_values=before,
            new_values={
                "amount_paid": invoice.amount_paid,
                "payment_status": invoice.payment_status,
                "due_date": invoice.due_date,
                "final_total": invoice.final_total,
            },
        )

        logger.info(
            "payment_updated",
            extra={
                "invoice_id": invoice.id,
                "amount_paid": invoice.amount_paid,
                "payment_status": invoice.payment_status.value,
            },
        )
        return invoice

    def sweep_overdue(self, as_of: date | None = None) -> list[int]:
        """
        Mark pending and partial invoices past their due date as overdue.

        Returns the ids of the invoices moved. Paid and already
        overdue invoices are never touched.
        """
        as_of = as_of or date.today()
        candidates = self.db.execute(
            select(Invoice.id, Invoice.payment_status)
            .where(
                Invoice.payment_status.in_(SWEEPABLE_PAYMENT_STATUSES),
                Invoice.due_date.is_not(None),
                Invoice.due_date < as_of,
            )
            .order_by(Invoice.id)
        ).all()

        moved: list[int] = []
        for invoice_id, previous_status in candidates:
            result = self.db.execute(
                update(Invoice)
                .where(
                    Invoice.id == invoice_id,
                    Invoice.payment_status.in_(SWEEPABLE_PAYMENT_STATUSES),
                )
                .values(
                    payment_status=PaymentStatus.OVERDUE,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Paid or swept by someone else in the meantime
                continue

            invoice = self.ledger_service.get_invoice_for_update(invoice_id)
            self.audit_service.record(
                invoice,
                AuditAction.PAYMENT_OVERDUE,
                None,
                old_values={"payment_status": previous_status},
                new_values={
                    "payment_status": PaymentStatus.OVERDUE,
                    "due_date": invoice.due_date,
                    "as_of": as_of,
                },
            )
            moved.append(invoice_id)

        logger.info(
            "overdue_sweep_completed",
            extra={"as_of": as_of.isoformat(), "marked_overdue": len(moved)},
        )
        return moved


def main(argv: list[str] | None = None) -> int:
    """Console entry point: lab-billing-sweep [--as-of YYYY-MM-DD]."""
    parser = argparse.ArgumentParser(
        prog="lab-billing-sweep",
        description="Mark unpaid invoices past their due date as overdue.",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Treat this date as today (default: the current date).",
    )
    args = parser.parse_args(argv)

    configure_logging(get_settings().LOG_LEVEL)

    db = SessionLocal()
    try:
        with atomic(db):
            moved = PaymentService(db).sweep_overdue(as_of=args.as_of)
    finally:
        db.close()

    print(f"Marked {len(moved)} invoice(s) overdue")
    return 0
