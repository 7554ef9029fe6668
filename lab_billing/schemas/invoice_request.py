"""
Pydantic schemas for invoice requests.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from lab_billing.models.enums import InvoiceRequestStatus


class InvoiceRequestCreate(BaseModel):
    order_id: int
    notes: str | None = Field(default=None, max_length=1000)


class InvoiceRequestReject(BaseModel):
    reason: str = Field(max_length=1000)


class InvoiceRequestResponse(BaseModel):
    id: int
    order_id: int
    requested_by: str
    status: InvoiceRequestStatus
    notes: str | None
    rejection_reason: str | None
    invoice_id: int | None
    processed_by: str | None
    processed_at: datetime | None
    requested_at: datetime

    model_config = {"from_attributes": True}
