"""
Pydantic schemas for disputes.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from lab_billing.models.enums import DisputeResolution


class DisputeRaise(BaseModel):
    reason: str = Field(max_length=1000)


class DisputeResolve(BaseModel):
    """
    Resolve a disputed invoice.

    adjustment_amount is required when action is ADJUSTED and
    ignored otherwise.
    """
    action: DisputeResolution
    notes: str = Field(max_length=1000)
    adjustment_amount: Decimal | None = Field(default=None, decimal_places=2)
