"""
Invoice number counter.

One row per numbering period ("invoice:202610"). The row is
locked with SELECT ... FOR UPDATE while the next number is
taken, so two concurrent generations can never receive the
same invoice number.
"""

from sqlalchemy import String, BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from lab_billing.models.base import Base


class InvoiceSequence(Base):
    __tablename__ = "invoice_sequences"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    current_value: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    def __repr__(self) -> str:
        return f"<InvoiceSequence {self.name}={self.current_value}>"
