"""
Adjustment and expense ledger.

Adjustments and expenses are appended, never edited. After
every append the invoice totals are recomputed by summing the
full set of rows in the same transaction:

    final_total = subtotal + adjustments_total - expenses_total

A cached total is never incremented in place, so concurrent
writers cannot make the stored totals drift from the rows.
The caller controls the commit.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from lab_billing.config import get_settings
from lab_billing.exceptions import (
    InvoiceNotFound,
    OrderNotFound,
    InvalidStatus,
    InvalidReason,
    InvalidAmount,
    OverpaymentRejected,
)
from lab_billing.logging_config import get_logger
from lab_billing.models.adjustment import InvoiceAdjustment
from lab_billing.models.enums import (
    AdjustmentType,
    AuditAction,
    InvoiceStatus,
    PaymentStatus,
    UserRole,
)
from lab_billing.models.expense import LogisticsExpense
from lab_billing.models.invoice import Invoice
from lab_billing.models.line_item import InvoiceLineItem
from lab_billing.models.order import Order
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.ledger import AdjustmentCreate, ExpenseCreate
from lab_billing.services.audit_service import AuditService
from lab_billing.services.permissions import (
    require_lab_scope,
    require_privileged,
    require_role,
)

logger = get_logger("services.ledger")

CENT = Decimal("0.01")

STAFF_ROLES = (UserRole.ADMIN, UserRole.LAB_STAFF)


def to_money(value: Any) -> Decimal:
    """Quantize to cents. SUM() may come back as float or int on some backends."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def derive_payment_status(
    invoice: Invoice, amount_paid: Decimal, today: date
) -> PaymentStatus:
    """
    Payment status is derived from the amounts, never chosen.

    paid when the total is covered, partial when something was
    paid, overdue when nothing was paid after the due date,
    pending otherwise.
    """
    if amount_paid >= invoice.final_total:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    if invoice.due_date is not None and invoice.due_date < today:
        return PaymentStatus.OVERDUE
    return PaymentStatus.PENDING


class LedgerService:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.audit_service = AuditService(db)

    # --- Invoice access ---

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def get_invoice_for_update(self, invoice_id: int) -> Invoice:
        """
        Re-read the invoice with a row lock.

        populate_existing overwrites whatever the session already
        holds, so the caller always sees the latest committed row.
        """
        invoice = self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def find_invoice_for_order(self, order_id: int, lock: bool = False) -> Invoice | None:
        query = select(Invoice).where(Invoice.order_id == order_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(query).scalar_one_or_none()

    # --- Totals ---

    def _sum(self, column, *criteria) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(column), 0)).where(*criteria)
        ).scalar_one()
        return to_money(total)

    def recompute_totals(self, invoice: Invoice) -> Invoice:
        """
        Re-sum every row feeding the invoice and store the result.

        When something has been paid, the payment status is
        re-derived against the new final total. An overdue invoice
        stays overdue until it is fully paid. Raises
        OverpaymentRejected when the new total falls below what
        was already paid.
        """
        self.db.flush()

        invoice.subtotal = self._sum(
            InvoiceLineItem.total_price, InvoiceLineItem.invoice_id == invoice.id
        )
        invoice.adjustments_total = self._sum(
            InvoiceAdjustment.amount, InvoiceAdjustment.invoice_id == invoice.id
        )
        invoice.expenses_total = self._sum(
            LogisticsExpense.amount, LogisticsExpense.invoice_id == invoice.id
        )
        invoice.final_total = to_money(
            invoice.subtotal + invoice.adjustments_total - invoice.expenses_total
        )

        if invoice.amount_paid and invoice.amount_paid > 0:
            self.check_not_overpaid(invoice)
            derived = derive_payment_status(
                invoice, invoice.amount_paid, date.today()
            )
            if (
                invoice.payment_status == PaymentStatus.OVERDUE
                and derived != PaymentStatus.PAID
            ):
                derived = PaymentStatus.OVERDUE
            invoice.payment_status = derived

        self.db.flush()
        return invoice

    @staticmethod
    def check_not_overpaid(invoice: Invoice) -> None:
        """No credit balance is kept: paid may never exceed the total."""
        if invoice.amount_paid > invoice.final_total:
            raise OverpaymentRejected(
                f"Invoice {invoice.invoice_number} has {invoice.amount_paid} paid, "
                f"more than the new total {invoice.final_total}",
                details={
                    "invoice_id": invoice.id,
                    "amount_paid": str(invoice.amount_paid),
                    "new_final_total": str(invoice.final_total),
                },
            )

    @staticmethod
    def totals_snapshot(invoice: Invoice) -> dict[str, Any]:
        return {
            "subtotal": invoice.subtotal,
            "adjustments_total": invoice.adjustments_total,
            "expenses_total": invoice.expenses_total,
            "final_total": invoice.final_total,
            "payment_status": invoice.payment_status,
        }

    # --- Adjustments ---

    def validate_adjustment_reason(self, reason: str | None, field: str = "reason") -> str:
        cleaned = (reason or "").strip()
        minimum = self.settings.ADJUSTMENT_REASON_MIN_LENGTH
        if len(cleaned) < minimum:
            raise InvalidReason(
                f"{field.capitalize()} must be at least {minimum} characters",
                details={"field": field, "min_length": minimum, "length": len(cleaned)},
            )
        return cleaned

    @staticmethod
    def validate_adjustment_amount(amount: Decimal | None) -> Decimal:
        if amount is None or to_money(amount) == 0:
            raise InvalidAmount(
                "Adjustment amount must be non-zero",
                details={"field": "amount", "value": str(amount)},
            )
        return to_money(amount)

    def append_adjustment(
        self,
        invoice: Invoice,
        adjustment_type: AdjustmentType,
        amount: Decimal,
        reason: str,
        approved_by: str,
        source_event: str | None = None,
        source_record_id: int | None = None,
    ) -> InvoiceAdjustment:
        """
        Insert an adjustment row and recompute totals.

        No status or role checks happen here; add_adjustment and
        the dispute resolver each guard their own entry point.
        """
        adjustment = InvoiceAdjustment(
            invoice_id=invoice.id,
            adjustment_type=adjustment_type,
            amount=amount,
            reason=reason,
            approved_by=approved_by,
            source_event=source_event,
            source_record_id=source_record_id,
        )
        self.db.add(adjustment)
        self.db.flush()
        self.recompute_totals(invoice)
        return adjustment

    def add_adjustment(
        self, invoice_id: int, request: AdjustmentCreate, actor: Actor
    ) -> InvoiceAdjustment:
        """
        Apply a reasoned, signed correction to a locked invoice.

        Negative amounts credit the doctor, positive amounts charge.
        Writes one 'adjusted' audit entry.
        """
        require_privileged(actor, "add adjustments")

        invoice = self.get_invoice_for_update(invoice_id)
        if invoice.status != InvoiceStatus.LOCKED:
            raise InvalidStatus(
                f"Adjustments require a locked invoice, "
                f"invoice {invoice.invoice_number} is {invoice.status.value}",
                details={
                    "invoice_id": invoice.id,
                    "status": invoice.status.value,
                    "required_status": InvoiceStatus.LOCKED.value,
                },
            )
        reason = self.validate_adjustment_reason(request.reason)
        amount = self.validate_adjustment_amount(request.amount)

        before = self.totals_snapshot(invoice)
        adjustment = self.append_adjustment(
            invoice,
            adjustment_type=request.adjustment_type,
            amount=amount,
            reason=reason,
            approved_by=actor.user_id,
        )

        self.audit_service.record(
            invoice,
            AuditAction.ADJUSTED,
            actor.user_id,
            old_values=before,
            new_values={
                **self.totals_snapshot(invoice),
                "adjustment_id": adjustment.id,
                "adjustment_type": adjustment.adjustment_type,
                "amount": adjustment.amount,
            },
            reason=reason,
        )

        logger.info(
            "adjustment_added",
            extra={
                "invoice_id": invoice.id,
                "adjustment_id": adjustment.id,
                "amount": adjustment.amount,
                "final_total": invoice.final_total,
            },
        )
        return adjustment

    # --- Expenses ---

    def add_expense(self, request: ExpenseCreate, actor: Actor) -> LogisticsExpense:
        """
        Record a logistics cost against an order or its invoice.

        Expenses may be recorded before the order has an invoice;
        they are linked when the invoice is generated. When an
        invoice exists it must not be finalized, the expense is
        linked to it, totals are recomputed and one
        'expense_added' audit entry is written.
        """
        require_role(actor, STAFF_ROLES, "record expenses")

        amount = to_money(request.amount)
        if amount <= 0:
            raise InvalidAmount(
                "Expense amount must be positive",
                details={"field": "amount", "value": str(request.amount)},
            )

        if request.invoice_id is not None:
            invoice = self.get_invoice_for_update(request.invoice_id)
            order = invoice.order
        else:
            order = self.db.get(Order, request.order_id)
            if not order:
                raise OrderNotFound(request.order_id)
            invoice = self.find_invoice_for_order(order.id, lock=True)
        require_lab_scope(actor, order, "record expenses")
        order_id = order.id

        if invoice is not None and not invoice.is_open:
            raise InvalidStatus(
                f"Invoice {invoice.invoice_number} is finalized and read-only",
                details={"invoice_id": invoice.id, "status": invoice.status.value},
            )

        expense = LogisticsExpense(
            order_id=order_id,
            invoice_id=invoice.id if invoice else None,
            expense_type=request.expense_type,
            amount=amount,
            description=request.description,
            recorded_by=actor.user_id,
            receipt_url=request.receipt_url,
        )
        self.db.add(expense)
        self.db.flush()

        if invoice is not None:
            before = self.totals_snapshot(invoice)
            self.recompute_totals(invoice)
            self.audit_service.record(
                invoice,
                AuditAction.EXPENSE_ADDED,
                actor.user_id,
                old_values=before,
                new_values={
                    **self.totals_snapshot(invoice),
                    "expense_id": expense.id,
                    "expense_type": expense.expense_type,
                    "amount": expense.amount,
                },
                reason=request.description,
            )

        logger.info(
            "expense_recorded",
            extra={
                "order_id": order_id,
                "invoice_id": expense.invoice_id,
                "expense_id": expense.id,
                "amount": expense.amount,
            },
        )
        return expense

    def link_unassigned_expenses(self, invoice: Invoice) -> list[LogisticsExpense]:
        """Attach expenses recorded against the order before it was invoiced."""
        expenses = list(self.db.execute(
            select(LogisticsExpense)
            .where(
                LogisticsExpense.order_id == invoice.order_id,
                LogisticsExpense.invoice_id.is_(None),
            )
            .order_by(LogisticsExpense.id)
        ).scalars().all())
        for expense in expenses:
            expense.invoice_id = invoice.id
        self.db.flush()
        return expenses
