"""
Invoice generator: turns a delivered order into an invoice.

Generation:
1. Checks the actor may generate invoices for the order's lab
2. Validates the order (exists, delivered, delivery confirmed)
3. Rejects a second invoice for the same order
4. Prices the order (agreed fee, else lab price list, else platform
   template)
5. Adds an urgency surcharge line for urgent orders not priced by
   an agreed fee
6. Allocates the invoice number from the locked sequence
7. Links expenses recorded before the invoice existed
8. Writes one 'generated' audit entry

The caller controls the commit.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lab_billing.config import get_settings
from lab_billing.exceptions import (
    OrderNotFound,
    NotEligible,
    AlreadyExists,
    NoPriceConfigured,
)
from lab_billing.logging_config import get_logger
from lab_billing.models.enums import (
    AuditAction,
    InvoiceStatus,
    LineItemType,
    PaymentStatus,
    PricingRuleType,
)
from lab_billing.models.invoice import Invoice
from lab_billing.models.line_item import InvoiceLineItem
from lab_billing.models.order import Order
from lab_billing.models.pricing import LabPricing, PricingRule
from lab_billing.schemas.actor import Actor
from lab_billing.services.audit_service import AuditService
from lab_billing.services.ledger_service import LedgerService, STAFF_ROLES, to_money
from lab_billing.services.permissions import require_lab_scope, require_role
from lab_billing.services.sequence_service import SequenceService

logger = get_logger("services.invoice_generator")

SOURCE_EVENT_DELIVERY_CONFIRMED = "delivery_confirmed"

RULE_AGREED_FEE = "agreed_fee"


class InvoiceGenerator:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.ledger_service = LedgerService(db)
        self.audit_service = AuditService(db)
        self.sequence_service = SequenceService(db)

    # --- Eligibility ---

    def _get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def check_eligible(self, order: Order) -> None:
        """Raise unless the order is delivered, confirmed and not yet invoiced."""
        if not order.is_billable:
            raise NotEligible(
                f"Order {order.order_number} is not delivered and confirmed",
                details={
                    "order_id": order.id,
                    "status": order.status.value,
                    "delivery_confirmed": order.delivery_confirmed_at is not None,
                },
            )
        existing = self.ledger_service.find_invoice_for_order(order.id)
        if existing:
            raise AlreadyExists(
                f"Order {order.order_number} already has invoice "
                f"{existing.invoice_number}",
                details={"order_id": order.id, "invoice_id": existing.id},
            )

    # --- Pricing ---

    def _find_lab_pricing(self, order: Order) -> LabPricing | None:
        if order.lab_id is None:
            return None
        return self.db.execute(
            select(LabPricing).where(
                LabPricing.lab_id == order.lab_id,
                LabPricing.restoration_type == order.restoration_type,
            )
        ).scalar_one_or_none()

    def _find_rule(
        self, rule_type: PricingRuleType, restoration_type: str
    ) -> PricingRule | None:
        """
        The winning active platform rule of the given type.

        A rule keyed to the restoration type or to no type at all
        applies. Lower priority numbers win; ties go to the oldest rule.
        """
        return self.db.execute(
            select(PricingRule)
            .where(
                PricingRule.rule_type == rule_type,
                PricingRule.is_active.is_(True),
                (PricingRule.restoration_type == restoration_type)
                | PricingRule.restoration_type.is_(None),
            )
            .order_by(PricingRule.priority, PricingRule.id)
            .limit(1)
        ).scalar_one_or_none()

    def _agreed_fee_line(self, order: Order) -> InvoiceLineItem:
        """The fee agreed with the lab covers the whole order."""
        fee = to_money(order.agreed_fee)
        quantity = max(order.unit_count or 1, 1)
        return InvoiceLineItem(
            line_type=LineItemType.BASE_PRICE,
            description=f"{order.restoration_type} x {quantity} (agreed fee)",
            quantity=1,
            unit_price=fee,
            total_price=fee,
            source_event=SOURCE_EVENT_DELIVERY_CONFIRMED,
            source_record_id=order.id,
            rule_applied=RULE_AGREED_FEE,
        )

    def _base_line(self, order: Order, lab_pricing: LabPricing | None) -> InvoiceLineItem:
        quantity = max(order.unit_count or 1, 1)

        if lab_pricing is not None and lab_pricing.fixed_price is not None:
            unit_price = to_money(lab_pricing.fixed_price)
            rule_applied = "lab_pricing"
        else:
            rule = self._find_rule(PricingRuleType.BASE_PRICE, order.restoration_type)
            if rule is None:
                raise NoPriceConfigured(
                    f"No price configured for restoration type "
                    f"'{order.restoration_type}'",
                    details={
                        "order_id": order.id,
                        "lab_id": order.lab_id,
                        "restoration_type": order.restoration_type,
                    },
                )
            unit_price = to_money(rule.amount)
            rule_applied = rule.rule_name

        return InvoiceLineItem(
            line_type=LineItemType.BASE_PRICE,
            description=f"{order.restoration_type} x {quantity}",
            quantity=quantity,
            unit_price=unit_price,
            total_price=to_money(unit_price * quantity),
            source_event=SOURCE_EVENT_DELIVERY_CONFIRMED,
            source_record_id=order.id,
            rule_applied=rule_applied,
        )

    def _urgency_line(
        self,
        order: Order,
        base_total: Decimal,
        lab_pricing: LabPricing | None,
    ) -> InvoiceLineItem | None:
        """
        Surcharge line for an urgent order, or None.

        A lab price that includes rush work carries no surcharge.
        A lab surcharge percentage wins over the platform rule.
        """
        priced_by_lab = lab_pricing is not None and lab_pricing.fixed_price is not None
        if priced_by_lab and lab_pricing.includes_rush:
            return None

        if priced_by_lab and lab_pricing.rush_surcharge_percent:
            percent = Decimal(str(lab_pricing.rush_surcharge_percent))
            amount = to_money(base_total * percent / Decimal("100"))
            rule_applied = "lab_pricing"
            description = f"Urgency surcharge ({percent.normalize():f}%)"
        else:
            rule = self._find_rule(
                PricingRuleType.URGENCY_SURCHARGE, order.restoration_type
            )
            if rule is None:
                return None
            if rule.is_percentage:
                percent = Decimal(str(rule.amount))
                amount = to_money(base_total * percent / Decimal("100"))
                description = f"Urgency surcharge ({percent.normalize():f}%)"
            else:
                amount = to_money(rule.amount)
                description = "Urgency surcharge"
            rule_applied = rule.rule_name

        if amount <= 0:
            return None

        return InvoiceLineItem(
            line_type=LineItemType.URGENCY_FEE,
            description=description,
            quantity=1,
            unit_price=amount,
            total_price=amount,
            source_event=SOURCE_EVENT_DELIVERY_CONFIRMED,
            source_record_id=order.id,
            rule_applied=rule_applied,
        )

    def price_order(self, order: Order) -> list[InvoiceLineItem]:
        """
        Build the (unsaved) line items for an order.

        A positive agreed fee wins over every price list and is
        all-inclusive, so it never carries an urgency surcharge.
        """
        if order.agreed_fee is not None and order.agreed_fee > 0:
            return [self._agreed_fee_line(order)]

        lab_pricing = self._find_lab_pricing(order)
        base = self._base_line(order, lab_pricing)
        lines = [base]
        if order.is_urgent:
            surcharge = self._urgency_line(order, base.total_price, lab_pricing)
            if surcharge is not None:
                lines.append(surcharge)
        return lines

    # --- Generation ---

    def generate(self, order_id: int, actor: Actor) -> Invoice:
        """Create the single invoice for an eligible order."""
        require_role(actor, STAFF_ROLES, "generate invoices")

        order = self._get_order(order_id)
        require_lab_scope(actor, order, "generate its invoice")
        self.check_eligible(order)
        lines = self.price_order(order)

        now = datetime.utcnow()
        invoice = Invoice(
            order_id=order.id,
            invoice_number=self.sequence_service.next_invoice_number(now),
            status=InvoiceStatus.GENERATED,
            payment_status=PaymentStatus.PENDING,
            due_date=now.date() + timedelta(days=self.settings.PAYMENT_TERMS_DAYS),
            generated_at=now,
            generated_by=actor.user_id,
        )
        self.db.add(invoice)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # A concurrent generation for the same order won the unique constraint
            raise AlreadyExists(
                f"Order {order.order_number} already has an invoice",
                details={"order_id": order.id, "constraint": "invoices.order_id"},
            ) from exc

        for line in lines:
            line.invoice_id = invoice.id
            self.db.add(line)
        self.db.flush()

        linked = self.ledger_service.link_unassigned_expenses(invoice)
        self.ledger_service.recompute_totals(invoice)

        self.audit_service.record(
            invoice,
            AuditAction.GENERATED,
            actor.user_id,
            new_values={
                "invoice_number": invoice.invoice_number,
                "status": invoice.status,
                **self.ledger_service.totals_snapshot(invoice),
                "due_date": invoice.due_date,
                "line_items": [
                    {
                        "line_type": line.line_type,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                        "total_price": line.total_price,
                        "rule_applied": line.rule_applied,
                    }
                    for line in lines
                ],
                "linked_expense_ids": [expense.id for expense in linked],
            },
        )

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "order_id": order.id,
                "final_total": invoice.final_total,
                "linked_expenses": len(linked),
            },
        )
        return invoice
