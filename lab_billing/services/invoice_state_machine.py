"""
Invoice state machine.

    generated -> locked -> finalized
        \\          /
         disputed  (returns to whichever state it was raised from)

Every transition is a compare-and-swap on the status column:

    UPDATE invoices SET status = :new WHERE id = :id AND status = :expected

If another request moved the invoice first, zero rows match and
the transition fails with InvalidTransition instead of silently
overwriting the other request's work. Each successful transition
writes one audit entry with the old and new status.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from lab_billing.exceptions import InvalidTransition
from lab_billing.logging_config import get_logger
from lab_billing.models.enums import AuditAction, InvoiceStatus
from lab_billing.models.invoice import Invoice
from lab_billing.schemas.actor import Actor
from lab_billing.services.audit_service import AuditService
from lab_billing.services.ledger_service import LedgerService
from lab_billing.services.permissions import require_privileged

logger = get_logger("services.state_machine")


class InvoiceStateMachine:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit_service = AuditService(db)

    def check_transition(self, invoice: Invoice, new_status: InvoiceStatus) -> None:
        if not invoice.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot move invoice {invoice.invoice_number} "
                f"from {invoice.status.value} to {new_status.value}",
                details={
                    "invoice_id": invoice.id,
                    "current_status": invoice.status.value,
                    "requested_status": new_status.value,
                },
            )

    def compare_and_swap(
        self,
        invoice: Invoice,
        expected: InvoiceStatus,
        new_status: InvoiceStatus,
        **values: Any,
    ) -> Invoice:
        """
        Move the invoice from expected to new_status in one guarded UPDATE.

        Extra column values are written by the same statement. The
        invoice is re-read afterwards so the session reflects the row.
        """
        self.db.flush()
        result = self.db.execute(
            update(Invoice)
            .where(Invoice.id == invoice.id, Invoice.status == expected)
            .values(status=new_status, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "invoice_transition_conflict",
                extra={
                    "invoice_id": invoice.id,
                    "expected_status": expected.value,
                    "requested_status": new_status.value,
                },
            )
            raise InvalidTransition(
                f"Invoice {invoice.invoice_number} is no longer "
                f"{expected.value}; reload and retry",
                details={
                    "invoice_id": invoice.id,
                    "expected_status": expected.value,
                    "requested_status": new_status.value,
                    "reason": "stale_status",
                },
            )
        return self.ledger_service.get_invoice_for_update(invoice.id)

    def transition(
        self,
        invoice: Invoice,
        new_status: InvoiceStatus,
        actor_id: str,
        action: AuditAction,
        reason: str | None = None,
        **values: Any,
    ) -> Invoice:
        """Validate, swap and audit a single status transition."""
        self.check_transition(invoice, new_status)
        old_status = invoice.status

        invoice = self.compare_and_swap(invoice, old_status, new_status, **values)

        self.audit_service.record(
            invoice,
            action,
            actor_id,
            old_values={"status": old_status},
            new_values={"status": new_status, **values},
            reason=reason,
        )
        logger.info(
            "invoice_transitioned",
            extra={
                "invoice_id": invoice.id,
                "from_status": old_status.value,
                "to_status": new_status.value,
                "performed_by": actor_id,
            },
        )
        return invoice

    def lock(self, invoice_id: int, actor: Actor) -> Invoice:
        """generated -> locked. Adjustments are only accepted once locked."""
        require_privileged(actor, "lock invoices")
        invoice = self.ledger_service.get_invoice_for_update(invoice_id)
        return self.transition(
            invoice,
            InvoiceStatus.LOCKED,
            actor.user_id,
            AuditAction.LOCKED,
            locked_at=datetime.utcnow(),
            locked_by=actor.user_id,
        )

    def finalize(self, invoice_id: int, actor: Actor) -> Invoice:
        """
        locked -> finalized. Terminal.

        Totals are re-summed first so the finalized figures include
        every adjustment and expense applied while locked.
        """
        require_privileged(actor, "finalize invoices")
        invoice = self.ledger_service.get_invoice_for_update(invoice_id)
        self.check_transition(invoice, InvoiceStatus.FINALIZED)
        self.ledger_service.recompute_totals(invoice)
        return self.transition(
            invoice,
            InvoiceStatus.FINALIZED,
            actor.user_id,
            AuditAction.FINALIZED,
            finalized_at=datetime.utcnow(),
            finalized_by=actor.user_id,
        )
