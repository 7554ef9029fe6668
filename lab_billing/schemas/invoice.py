"""
Pydantic schemas for invoices and their read models.

These define the API contract: what data comes in and
what data goes out. They are separate from the database
models because the API shape and the storage shape
are often different.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from lab_billing.models.enums import (
    InvoiceStatus,
    PaymentStatus,
    LineItemType,
    AdjustmentType,
    ExpenseType,
    AuditAction,
    DisputeResolution,
    OrderStatus,
)


# --- Request Schemas ---

class InvoiceGenerate(BaseModel):
    """Request to generate the invoice for a delivered order."""
    order_id: int


# --- Response Schemas ---

class LineItemResponse(BaseModel):
    id: int
    line_type: LineItemType
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    source_event: str
    source_record_id: int | None
    rule_applied: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdjustmentResponse(BaseModel):
    id: int
    invoice_id: int
    adjustment_type: AdjustmentType
    amount: Decimal
    reason: str
    approved_by: str
    source_event: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpenseResponse(BaseModel):
    id: int
    order_id: int
    invoice_id: int | None
    expense_type: ExpenseType
    amount: Decimal
    description: str | None
    recorded_by: str
    receipt_url: str | None
    incurred_at: datetime

    model_config = {"from_attributes": True}


class AuditEntryResponse(BaseModel):
    id: int
    action: AuditAction
    performed_by: str | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    order_id: int
    invoice_number: str
    status: InvoiceStatus
    payment_status: PaymentStatus
    subtotal: Decimal
    adjustments_total: Decimal
    expenses_total: Decimal
    final_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    due_date: date | None
    generated_at: datetime | None
    locked_at: datetime | None
    finalized_at: datetime | None
    finalized_by: str | None
    payment_received_at: datetime | None
    disputed_at: datetime | None
    dispute_reason: str | None
    dispute_resolution: DisputeResolution | None
    dispute_resolution_notes: str | None
    dispute_resolved_at: datetime | None
    dispute_resolved_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceDetailResponse(InvoiceResponse):
    """An invoice with every row that contributes to its totals."""
    line_items: list[LineItemResponse]
    adjustments: list[AdjustmentResponse]
    expenses: list[ExpenseResponse]
    audit_entries: list[AuditEntryResponse]


class EligibleOrderResponse(BaseModel):
    id: int
    order_number: str
    doctor_id: str
    lab_id: int | None
    restoration_type: str
    is_urgent: bool
    unit_count: int
    agreed_fee: Decimal | None
    status: OrderStatus
    delivery_confirmed_at: datetime | None

    model_config = {"from_attributes": True}
