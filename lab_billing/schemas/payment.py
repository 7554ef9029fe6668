"""
Pydantic schemas for payment tracking.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class PaymentUpdate(BaseModel):
    """Record the cumulative amount paid; status is derived, never chosen."""
    amount_paid: Decimal = Field(decimal_places=2)
    # None keeps the invoice's current due date
    due_date: date | None = None


class OverdueSweepResponse(BaseModel):
    as_of: date
    marked_overdue: list[int]
