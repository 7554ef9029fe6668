"""
Invoice line item model.

Line items are written once, when the invoice is generated,
and never modified afterwards. The invoice subtotal is the sum
of its line items.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Integer, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import LineItemType, enum_values


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id"), nullable=False, index=True
    )
    line_type: Mapped[LineItemType] = mapped_column(
        SAEnum(
            LineItemType,
            name="line_item_type_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Provenance: which event produced the line and from which record
    source_event: Mapped[str] = mapped_column(String(50), nullable=False)
    source_record_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rule_applied: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="line_items")

    def __repr__(self) -> str:
        return (
            f"<InvoiceLineItem {self.line_type.value} "
            f"{self.quantity} x {self.unit_price}>"
        )
