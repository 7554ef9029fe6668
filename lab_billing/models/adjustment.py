"""
Invoice adjustment model.

An adjustment is a signed, reasoned correction to an invoice:
negative amounts credit the doctor, positive amounts charge more.
Adjustments are append-only: once written they are never
modified or deleted. The invoice's adjustments_total is the sum
of all its adjustment rows.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Integer, Text, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import AdjustmentType, enum_values


class InvoiceAdjustment(Base):
    __tablename__ = "invoice_adjustments"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id"), nullable=False, index=True
    )
    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        SAEnum(
            AdjustmentType,
            name="adjustment_type_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    approved_by: Mapped[str] = mapped_column(String(64), nullable=False)
    # Set when the adjustment came out of another workflow (dispute resolution)
    source_event: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_record_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="adjustments")

    def __repr__(self) -> str:
        return f"<InvoiceAdjustment {self.adjustment_type.value} {self.amount}>"
