"""
Billing audit log model.

Every mutation of an invoice writes exactly one row here, in the
same transaction as the mutation itself. That covers generation,
status transitions, adjustments, expenses, payments and disputes.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import AuditAction, enum_values


class BillingAuditLog(Base):
    """
    Immutable record of one billing action.

    Like adjustments, audit entries are append-only.
    You never update or delete an audit record.
    """

    __tablename__ = "billing_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id"), nullable=False, index=True
    )
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(
            AuditAction,
            name="audit_action_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )
    # NULL for system actions such as the overdue sweep
    performed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="audit_entries")

    def __repr__(self) -> str:
        return f"<BillingAuditLog invoice={self.invoice_id} {self.action.value}>"
