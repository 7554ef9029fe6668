"""
Logistics expense model.

Delivery, courier and packaging costs incurred on an order.
Expenses are unsigned and always deducted from the invoice
total. They may be recorded before the order has an invoice;
invoice_id is filled in when the invoice is generated.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_billing.models.base import Base
from lab_billing.models.enums import ExpenseType, enum_values


class LogisticsExpense(Base):
    __tablename__ = "logistics_expenses"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_logistics_expenses_amount"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id"), nullable=False, index=True
    )
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True, index=True
    )
    expense_type: Mapped[ExpenseType] = mapped_column(
        SAEnum(
            ExpenseType,
            name="expense_type_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    recorded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    incurred_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    invoice: Mapped["Invoice | None"] = relationship(back_populates="expenses")

    def __repr__(self) -> str:
        return f"<LogisticsExpense {self.expense_type.value} {self.amount}>"
