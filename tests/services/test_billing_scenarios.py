"""
End-to-end billing scenarios through the service layer.

One invoice is carried through generation, locking, adjustment,
expenses, finalization, payment and the overdue sweep. The
reconciliation identity is checked after every step.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from lab_billing.exceptions import InvalidStatus
from lab_billing.models import (
    AdjustmentType,
    AuditAction,
    DisputeResolution,
    ExpenseType,
    InvoiceAdjustment,
    InvoiceStatus,
    PaymentStatus,
)
from lab_billing.models.base import atomic
from lab_billing.schemas.dispute import DisputeRaise, DisputeResolve
from lab_billing.schemas.ledger import AdjustmentCreate, ExpenseCreate
from lab_billing.schemas.payment import PaymentUpdate
from lab_billing.services.audit_service import AuditService
from lab_billing.services.dispute_service import DisputeService
from lab_billing.services.invoice_generator import InvoiceGenerator
from lab_billing.services.invoice_state_machine import InvoiceStateMachine
from lab_billing.services.ledger_service import LedgerService
from lab_billing.services.payment_service import PaymentService


def assert_reconciled(invoice):
    assert invoice.final_total == (
        invoice.subtotal + invoice.adjustments_total - invoice.expenses_total
    )


@pytest.fixture
def urgent_invoice(db_session, make_order, platform_pricing, admin):
    """Three crowns at 100.00 with the 10% urgency surcharge."""
    order = make_order(unit_count=3, is_urgent=True)
    with atomic(db_session):
        invoice = InvoiceGenerator(db_session).generate(order.id, admin)
    return invoice


class TestInvoiceLifecycle:

    def test_generate_lock_adjust_expense_finalize_pay(
        self, db_session, urgent_invoice, admin
    ):
        ledger = LedgerService(db_session)
        machine = InvoiceStateMachine(db_session)
        invoice_id = urgent_invoice.id

        # Generated
        assert urgent_invoice.status == InvoiceStatus.GENERATED
        assert urgent_invoice.subtotal == Decimal("330.00")
        assert urgent_invoice.final_total == Decimal("330.00")
        assert_reconciled(urgent_invoice)

        # Locked and discounted
        with atomic(db_session):
            machine.lock(invoice_id, admin)
            ledger.add_adjustment(
                invoice_id,
                AdjustmentCreate(
                    adjustment_type=AdjustmentType.DISCOUNT,
                    amount=Decimal("-30"),
                    reason="loyalty discount applied",
                ),
                admin,
            )
        invoice = ledger.get_invoice(invoice_id)
        assert invoice.adjustments_total == Decimal("-30.00")
        assert invoice.final_total == Decimal("300.00")
        assert_reconciled(invoice)

        # Courier expense while locked
        with atomic(db_session):
            ledger.add_expense(
                ExpenseCreate(
                    invoice_id=invoice_id,
                    expense_type=ExpenseType.COURIER,
                    amount=Decimal("20"),
                ),
                admin,
            )
        invoice = ledger.get_invoice(invoice_id)
        assert invoice.expenses_total == Decimal("20.00")
        assert invoice.final_total == Decimal("280.00")
        assert_reconciled(invoice)

        # Finalized; money fields are closed from here on
        with atomic(db_session):
            machine.finalize(invoice_id, admin)
        invoice = ledger.get_invoice(invoice_id)
        assert invoice.status == InvoiceStatus.FINALIZED

        with pytest.raises(InvalidStatus):
            with atomic(db_session):
                ledger.add_adjustment(
                    invoice_id,
                    AdjustmentCreate(
                        adjustment_type=AdjustmentType.CREDIT,
                        amount=Decimal("-5"),
                        reason="late goodwill credit",
                    ),
                    admin,
                )
        invoice = ledger.get_invoice(invoice_id)
        assert invoice.final_total == Decimal("280.00")

        # Paid in full; the sweep leaves it alone even well past due
        with atomic(db_session):
            PaymentService(db_session).update_payment(
                invoice_id, PaymentUpdate(amount_paid=invoice.final_total), admin
            )
        with atomic(db_session):
            moved = PaymentService(db_session).sweep_overdue(
                as_of=invoice.due_date + timedelta(days=90)
            )
        invoice = ledger.get_invoice(invoice_id)
        assert moved == []
        assert invoice.payment_status == PaymentStatus.PAID

        actions = [e.action for e in AuditService(db_session).get_entries(invoice_id)]
        assert actions == [
            AuditAction.GENERATED,
            AuditAction.LOCKED,
            AuditAction.ADJUSTED,
            AuditAction.EXPENSE_ADDED,
            AuditAction.FINALIZED,
            AuditAction.PAYMENT_UPDATED,
        ]

    def test_dispute_resolved_with_correction(
        self, db_session, make_invoice, admin, doctor
    ):
        invoice = make_invoice()
        disputes = DisputeService(db_session)

        with atomic(db_session):
            disputes.raise_dispute(
                invoice.id, DisputeRaise(reason="wrong quantity billed"), doctor
            )
        invoice = LedgerService(db_session).get_invoice(invoice.id)
        assert invoice.status == InvoiceStatus.DISPUTED

        with atomic(db_session):
            disputes.resolve_dispute(
                invoice.id,
                DisputeResolve(
                    action=DisputeResolution.ADJUSTED,
                    notes="corrected quantity",
                    adjustment_amount=Decimal("-15"),
                ),
                admin,
            )

        invoice = LedgerService(db_session).get_invoice(invoice.id)
        adjustments = db_session.query(InvoiceAdjustment).filter_by(
            invoice_id=invoice.id
        ).all()
        assert invoice.status == InvoiceStatus.GENERATED
        assert [a.amount for a in adjustments] == [Decimal("-15.00")]
        assert invoice.final_total == Decimal("85.00")
        assert_reconciled(invoice)

    def test_recomputed_totals_match_rows_after_many_mutations(
        self, db_session, make_invoice, admin
    ):
        invoice = make_invoice()
        ledger = LedgerService(db_session)
        with atomic(db_session):
            InvoiceStateMachine(db_session).lock(invoice.id, admin)

        amounts = ["-1.10", "2.20", "-3.30"]
        for amount in amounts:
            with atomic(db_session):
                ledger.add_adjustment(
                    invoice.id,
                    AdjustmentCreate(
                        adjustment_type=AdjustmentType.CORRECTION,
                        amount=Decimal(amount),
                        reason="price list correction",
                    ),
                    admin,
                )
        for amount in ["4.40", "0.60"]:
            with atomic(db_session):
                ledger.add_expense(
                    ExpenseCreate(
                        invoice_id=invoice.id,
                        expense_type=ExpenseType.PACKAGING,
                        amount=Decimal(amount),
                    ),
                    admin,
                )

        invoice = ledger.get_invoice(invoice.id)
        assert invoice.adjustments_total == Decimal("-2.20")
        assert invoice.expenses_total == Decimal("5.00")
        assert invoice.final_total == Decimal("92.80")
        assert_reconciled(invoice)
