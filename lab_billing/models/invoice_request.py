"""
Invoice request model.

Doctors ask for an invoice on a delivered order; lab staff or
admins process the request by generating the invoice or
rejecting it with a reason.
"""

from datetime import datetime

from sqlalchemy import (
    String, Text, DateTime, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import InvoiceRequestStatus, enum_values


class InvoiceRequest(Base):
    __tablename__ = "invoice_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id"), nullable=False, index=True
    )
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[InvoiceRequestStatus] = mapped_column(
        SAEnum(
            InvoiceRequestStatus,
            name="invoice_request_status_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=InvoiceRequestStatus.PENDING,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    processed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    order: Mapped["Order"] = relationship()

    def __repr__(self) -> str:
        return f"<InvoiceRequest order={self.order_id} ({self.status.value})>"
