"""
Invoice model.

One invoice per billable order, enforced by a unique constraint
on order_id. The invoice stores derived money columns
(adjustments_total, expenses_total, final_total) but they are
always recomputed from the underlying rows by the LedgerService,
never incremented in place.

The invoice has a state machine governing its lifecycle.
Invalid state transitions are rejected.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import (
    InvoiceStatus,
    PaymentStatus,
    DisputeResolution,
    enum_values,
)


# Valid state transitions. The state machine consults nothing else.
# DISPUTED exits back to whichever state the dispute was raised from.
VALID_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: set(),
    InvoiceStatus.GENERATED: {InvoiceStatus.LOCKED, InvoiceStatus.DISPUTED},
    InvoiceStatus.LOCKED: {InvoiceStatus.FINALIZED, InvoiceStatus.DISPUTED},
    InvoiceStatus.DISPUTED: {InvoiceStatus.GENERATED, InvoiceStatus.LOCKED},
    InvoiceStatus.FINALIZED: set(),  # Terminal
}

# Statuses in which money-affecting rows may still be appended
OPEN_STATUSES = frozenset({
    InvoiceStatus.DRAFT,
    InvoiceStatus.GENERATED,
    InvoiceStatus.LOCKED,
    InvoiceStatus.DISPUTED,
})

# Shared by status and status_before_dispute so the database
# enum type is declared once
INVOICE_STATUS_TYPE = SAEnum(
    InvoiceStatus,
    name="invoice_status_enum",
    values_callable=enum_values,
)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id"), unique=True, nullable=False
    )
    invoice_number: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        INVOICE_STATUS_TYPE,
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    status_before_dispute: Mapped[InvoiceStatus | None] = mapped_column(
        INVOICE_STATUS_TYPE, nullable=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_status_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # --- Money ---
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    adjustments_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    expenses_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    final_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # --- Lifecycle stamps ---
    generated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    generated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finalized_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_received_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    # --- Dispute ---
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    disputed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispute_resolution: Mapped[DisputeResolution | None] = mapped_column(
        SAEnum(
            DisputeResolution,
            name="dispute_resolution_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=True,
    )
    dispute_resolution_notes: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    dispute_resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    dispute_resolved_by: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    order: Mapped["Order"] = relationship()
    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice", order_by="InvoiceLineItem.id"
    )
    adjustments: Mapped[list["InvoiceAdjustment"]] = relationship(
        back_populates="invoice", order_by="InvoiceAdjustment.id"
    )
    expenses: Mapped[list["LogisticsExpense"]] = relationship(
        back_populates="invoice", order_by="LogisticsExpense.id"
    )
    audit_entries: Mapped[list["BillingAuditLog"]] = relationship(
        back_populates="invoice", order_by="BillingAuditLog.id"
    )

    def can_transition_to(self, new_status: InvoiceStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def is_open(self) -> bool:
        """Adjustments and expenses may still change the totals."""
        return self.status in OPEN_STATUSES

    @property
    def balance_due(self) -> Decimal:
        return self.final_total - self.amount_paid

    def __repr__(self) -> str:
        return (
            f"<Invoice {self.invoice_number} "
            f"{self.final_total} ({self.status.value})>"
        )
