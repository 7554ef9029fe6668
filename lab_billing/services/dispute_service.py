"""
Dispute resolver.

A party to the order (the ordering doctor or staff of the
assigned lab) may dispute a generated or locked invoice. The
invoice is frozen in 'disputed' until an administrator resolves
it, after which it returns to the status it was raised from:

    rejected  - no change
    accepted  - no change; corrective adjustments are issued separately
    adjusted  - a correction adjustment is applied

For 'adjusted', the adjustment, the recomputed totals, the status
reversion and the audit entry are written in one transaction.
Finalized invoices cannot be disputed.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from lab_billing.exceptions import InvalidStatus, InvalidReason, AlreadyDisputed
from lab_billing.logging_config import get_logger
from lab_billing.models.enums import (
    AdjustmentType,
    AuditAction,
    DisputeResolution,
    InvoiceStatus,
    UserRole,
)
from lab_billing.models.invoice import Invoice
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.dispute import DisputeRaise, DisputeResolve
from lab_billing.services.audit_service import AuditService
from lab_billing.services.invoice_state_machine import InvoiceStateMachine
from lab_billing.services.ledger_service import LedgerService
from lab_billing.services.permissions import (
    require_privileged,
    require_role,
    require_order_party,
)

logger = get_logger("services.dispute")

DISPUTABLE_STATUSES = frozenset({InvoiceStatus.GENERATED, InvoiceStatus.LOCKED})

SOURCE_EVENT_DISPUTE_RESOLUTION = "dispute_resolution"


def _require_text(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidReason(
            f"{field.capitalize()} is required",
            details={"field": field},
        )
    return cleaned


class DisputeService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.state_machine = InvoiceStateMachine(db)
        self.audit_service = AuditService(db)

    def raise_dispute(
        self, invoice_id: int, request: DisputeRaise, actor: Actor
    ) -> Invoice:
        """Move a generated or locked invoice to 'disputed'."""
        invoice = self.ledger_service.get_invoice_for_update(invoice_id)

        require_role(actor, (UserRole.DOCTOR, UserRole.LAB_STAFF), "dispute invoices")
        require_order_party(actor, invoice.order, "dispute its invoice")
        reason = _require_text(request.reason, "reason")

        if invoice.status == InvoiceStatus.DISPUTED:
            raise AlreadyDisputed(
                f"Invoice {invoice.invoice_number} is already disputed",
                details={"invoice_id": invoice.id, "disputed_at": invoice.disputed_at},
            )
        if invoice.status not in DISPUTABLE_STATUSES:
            raise InvalidStatus(
                f"Invoice {invoice.invoice_number} cannot be disputed "
                f"while {invoice.status.value}",
                details={
                    "invoice_id": invoice.id,
                    "status": invoice.status.value,
                    "allowed_statuses": sorted(s.value for s in DISPUTABLE_STATUSES),
                },
            )

        previous = invoice.status
        now = datetime.utcnow()
        invoice = self.state_machine.compare_and_swap(
            invoice,
            previous,
            InvoiceStatus.DISPUTED,
            status_before_dispute=previous,
            disputed_at=now,
            disputed_by=actor.user_id,
            dispute_reason=reason,
            dispute_resolution=None,
            dispute_resolution_notes=None,
            dispute_resolved_at=None,
            dispute_resolved_by=None,
        )

        self.audit_service.record(
            invoice,
            AuditAction.DISPUTED,
            actor.user_id,
            old_values={"status": previous},
            new_values={"status": InvoiceStatus.DISPUTED, "disputed_at": now},
            reason=reason,
        )

        logger.info(
            "invoice_disputed",
            extra={
                "invoice_id": invoice.id,
                "from_status": previous.value,
                "disputed_by": actor.user_id,
            },
        )
        return invoice

    def resolve_dispute(
        self, invoice_id: int, request: DisputeResolve, actor: Actor
    ) -> Invoice:
        """
        Resolve a disputed invoice and return it to its prior status.

        Validation happens before anything is written, so a rejected
        resolution leaves the invoice untouched.
        """
        require_privileged(actor, "resolve disputes")

        invoice = self.ledger_service.get_invoice_for_update(invoice_id)
        if invoice.status != InvoiceStatus.DISPUTED:
            raise InvalidStatus(
                f"Invoice {invoice.invoice_number} is not disputed",
                details={"invoice_id": invoice.id, "status": invoice.status.value},
            )

        notes = _require_text(request.notes, "notes")
        amount = None
        if request.action == DisputeResolution.ADJUSTED:
            amount = self.ledger_service.validate_adjustment_amount(
                request.adjustment_amount
            )
            notes = self.ledger_service.validate_adjustment_reason(notes, field="notes")

        restored = invoice.status_before_dispute or InvoiceStatus.GENERATED
        self.state_machine.check_transition(invoice, restored)
        before = {
            "status": invoice.status,
            **self.ledger_service.totals_snapshot(invoice),
        }

        adjustment = None
        if amount is not None:
            adjustment = self.ledger_service.append_adjustment(
                invoice,
                adjustment_type=AdjustmentType.CORRECTION,
                amount=amount,
                reason=notes,
                approved_by=actor.user_id,
                source_event=SOURCE_EVENT_DISPUTE_RESOLUTION,
                source_record_id=invoice.id,
            )

        invoice = self.state_machine.compare_and_swap(
            invoice,
            InvoiceStatus.DISPUTED,
            restored,
            dispute_resolution=request.action,
            dispute_resolution_notes=notes,
            dispute_resolved_at=datetime.utcnow(),
            dispute_resolved_by=actor.user_id,
        )

        after = {
            "status": restored,
            "resolution": request.action,
            **self.ledger_service.totals_snapshot(invoice),
        }
        if adjustment is not None:
            after["adjustment_id"] = adjustment.id
            after["adjustment_amount"] = adjustment.amount

        self.audit_service.record(
            invoice,
            AuditAction.DISPUTE_RESOLVED,
            actor.user_id,
            old_values=before,
            new_values=after,
            reason=notes,
        )

        logger.info(
            "dispute_resolved",
            extra={
                "invoice_id": invoice.id,
                "resolution": request.action.value,
                "restored_status": restored.value,
                "adjustment_id": adjustment.id if adjustment else None,
            },
        )
        return invoice
