"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid invoice status
or adjustment type is caught at the database level, not just
in Python validation.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    """Lifecycle of an invoice. See models.invoice.VALID_TRANSITIONS."""
    DRAFT = "draft"
    GENERATED = "generated"
    LOCKED = "locked"
    FINALIZED = "finalized"
    DISPUTED = "disputed"


class PaymentStatus(str, enum.Enum):
    """Payment axis, independent of InvoiceStatus."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class LineItemType(str, enum.Enum):
    BASE_PRICE = "base_price"
    URGENCY_FEE = "urgency_fee"


class AdjustmentType(str, enum.Enum):
    DISCOUNT = "discount"
    CREDIT = "credit"
    PENALTY = "penalty"
    BONUS = "bonus"
    CORRECTION = "correction"


class ExpenseType(str, enum.Enum):
    DELIVERY = "delivery"
    RE_DELIVERY = "re_delivery"
    COURIER = "courier"
    PACKAGING = "packaging"
    PICKUP = "pickup"
    OTHER = "other"


class AuditAction(str, enum.Enum):
    GENERATED = "generated"
    LOCKED = "locked"
    FINALIZED = "finalized"
    ADJUSTED = "adjusted"
    EXPENSE_ADDED = "expense_added"
    PAYMENT_UPDATED = "payment_updated"
    PAYMENT_OVERDUE = "payment_overdue"
    DISPUTED = "disputed"
    DISPUTE_RESOLVED = "dispute_resolved"


class DisputeResolution(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ADJUSTED = "adjusted"


class InvoiceRequestStatus(str, enum.Enum):
    PENDING = "pending"
    GENERATED = "generated"
    REJECTED = "rejected"


class PricingRuleType(str, enum.Enum):
    """Platform template rules."""
    BASE_PRICE = "base_price"
    URGENCY_SURCHARGE = "urgency_surcharge"


class OrderStatus(str, enum.Enum):
    """Order lifecycle as published by the order subsystem."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class UserRole(str, enum.Enum):
    """Coarse role classification supplied by the identity subsystem."""
    ADMIN = "admin"
    LAB_STAFF = "lab_staff"
    DOCTOR = "doctor"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values ("locked") rather than member names ("LOCKED")."""
    return [member.value for member in enum_cls]
