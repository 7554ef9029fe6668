"""
Order model.

Orders belong to the order subsystem. The billing ledger only
reads them: an order becomes billable once it is delivered and
the doctor has confirmed delivery.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Integer, Boolean, DateTime, Numeric, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from lab_billing.models.base import Base
from lab_billing.models.enums import OrderStatus, enum_values


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    doctor_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    lab_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )
    restoration_type: Mapped[str] = mapped_column(
        String(50), nullable=False
    )
    is_urgent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Priced units (teeth) on the order
    unit_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    # Fee accepted with the lab's bid; covers the whole order
    agreed_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            name="order_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    delivery_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    @property
    def is_billable(self) -> bool:
        """Delivered and delivery-confirmed."""
        return (
            self.status == OrderStatus.DELIVERED
            and self.delivery_confirmed_at is not None
        )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} ({self.status.value})>"
