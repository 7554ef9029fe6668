"""
Read models for invoices and billable orders.
"""

from sqlalchemy import select, exists
from sqlalchemy.orm import Session, selectinload

from lab_billing.exceptions import InvoiceNotFound
from lab_billing.models.enums import InvoiceStatus, OrderStatus, PaymentStatus
from lab_billing.models.invoice import Invoice
from lab_billing.models.order import Order


class InvoiceQueryService:

    def __init__(self, db: Session):
        self.db = db

    def get_invoice_detail(self, invoice_id: int) -> Invoice:
        """Invoice with line items, adjustments, expenses and audit trail (oldest first)."""
        invoice = self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(
                selectinload(Invoice.line_items),
                selectinload(Invoice.adjustments),
                selectinload(Invoice.expenses),
                selectinload(Invoice.audit_entries),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def get_invoice_for_order(self, order_id: int) -> Invoice:
        invoice_id = self.db.execute(
            select(Invoice.id).where(Invoice.order_id == order_id)
        ).scalar_one_or_none()
        if invoice_id is None:
            raise InvoiceNotFound(f"for order {order_id}")
        return self.get_invoice_detail(invoice_id)

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> list[Invoice]:
        """All invoices, newest first, optionally filtered."""
        query = select(Invoice)
        if status is not None:
            query = query.where(Invoice.status == status)
        if payment_status is not None:
            query = query.where(Invoice.payment_status == payment_status)
        query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        return list(self.db.execute(query).scalars().all())

    def list_eligible_orders(self) -> list[Order]:
        """Delivered, delivery-confirmed orders that have no invoice yet."""
        has_invoice = exists().where(Invoice.order_id == Order.id)
        return list(self.db.execute(
            select(Order)
            .where(
                Order.status == OrderStatus.DELIVERED,
                Order.delivery_confirmed_at.is_not(None),
                ~has_invoice,
            )
            .order_by(Order.delivery_confirmed_at, Order.id)
        ).scalars().all())
