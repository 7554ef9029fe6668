"""
Pydantic schemas for adjustments and logistics expenses.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from lab_billing.models.enums import AdjustmentType, ExpenseType


class AdjustmentCreate(BaseModel):
    """
    A signed correction to a locked invoice.

    Negative amounts credit the doctor; positive amounts charge.
    The reason length rule is enforced by the LedgerService so
    that it reports a domain error rather than a schema error.
    """
    adjustment_type: AdjustmentType
    amount: Decimal = Field(decimal_places=2)
    reason: str = Field(max_length=1000)


class ExpenseCreate(BaseModel):
    """
    A logistics cost recorded against an order or an invoice.

    Exactly one of order_id or invoice_id must be given.
    """
    order_id: int | None = None
    invoice_id: int | None = None
    expense_type: ExpenseType
    amount: Decimal = Field(decimal_places=2)
    description: str | None = Field(default=None, max_length=255)
    receipt_url: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def exactly_one_target(self) -> "ExpenseCreate":
        if (self.order_id is None) == (self.invoice_id is None):
            raise ValueError("provide exactly one of order_id or invoice_id")
        return self
