"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from lab_billing.models.base import Base
from lab_billing.models.enums import (
    InvoiceStatus,
    PaymentStatus,
    LineItemType,
    AdjustmentType,
    ExpenseType,
    AuditAction,
    DisputeResolution,
    InvoiceRequestStatus,
    PricingRuleType,
    OrderStatus,
    UserRole,
)
from lab_billing.models.order import Order
from lab_billing.models.pricing import LabPricing, PricingRule
from lab_billing.models.invoice import Invoice
from lab_billing.models.line_item import InvoiceLineItem
from lab_billing.models.adjustment import InvoiceAdjustment
from lab_billing.models.expense import LogisticsExpense
from lab_billing.models.audit_log import BillingAuditLog
from lab_billing.models.invoice_sequence import InvoiceSequence
from lab_billing.models.invoice_request import InvoiceRequest

__all__ = [
    "Base",
    "InvoiceStatus",
    "PaymentStatus",
    "LineItemType",
    "AdjustmentType",
    "ExpenseType",
    "AuditAction",
    "DisputeResolution",
    "InvoiceRequestStatus",
    "PricingRuleType",
    "OrderStatus",
    "UserRole",
    "Order",
    "LabPricing",
    "PricingRule",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceAdjustment",
    "LogisticsExpense",
    "BillingAuditLog",
    "InvoiceSequence",
    "InvoiceRequest",
]
