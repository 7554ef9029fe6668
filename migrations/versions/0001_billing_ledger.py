"""Billing ledger schema: invoices, line items, adjustments, expenses, audit log.

Also creates the read-only reference tables (orders, lab_pricing,
pricing_rules) that the order and pricing subsystems populate.

Revision ID: 0001_billing_ledger
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_billing_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


order_status = sa.Enum(
    "pending", "in_progress", "ready_for_delivery", "delivered", "cancelled",
    name="order_status_enum",
)
pricing_rule_type = sa.Enum(
    "base_price", "urgency_surcharge", name="pricing_rule_type_enum"
)
invoice_status = sa.Enum(
    "draft", "generated", "locked", "finalized", "disputed",
    name="invoice_status_enum",
)
payment_status = sa.Enum(
    "pending", "partial", "paid", "overdue",
    name="payment_status_enum", create_constraint=True,
)
dispute_resolution = sa.Enum(
    "accepted", "rejected", "adjusted",
    name="dispute_resolution_enum", create_constraint=True,
)
line_item_type = sa.Enum("base_price", "urgency_fee", name="line_item_type_enum")
adjustment_type = sa.Enum(
    "discount", "credit", "penalty", "bonus", "correction",
    name="adjustment_type_enum", create_constraint=True,
)
expense_type = sa.Enum(
    "delivery", "re_delivery", "courier", "packaging", "pickup", "other",
    name="expense_type_enum", create_constraint=True,
)
audit_action = sa.Enum(
    "generated", "locked", "finalized", "adjusted", "expense_added",
    "payment_updated", "payment_overdue", "disputed",
    "dispute_resolved",
    name="audit_action_enum",
)
invoice_request_status = sa.Enum(
    "pending", "generated", "rejected",
    name="invoice_request_status_enum", create_constraint=True,
)

ALL_ENUMS = (
    order_status, pricing_rule_type, invoice_status, payment_status,
    dispute_resolution, line_item_type, adjustment_type, expense_type,
    audit_action, invoice_request_status,
)


def upgrade() -> None:
    # ----- reference tables -----
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(50), nullable=False, unique=True),
        sa.Column("doctor_id", sa.String(64), nullable=False),
        sa.Column("lab_id", sa.Integer(), nullable=True),
        sa.Column("restoration_type", sa.String(50), nullable=False),
        sa.Column("is_urgent", sa.Boolean(), nullable=False),
        sa.Column("unit_count", sa.Integer(), nullable=False),
        sa.Column("agreed_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("delivery_confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_orders_doctor_id", "orders", ["doctor_id"])
    op.create_index("ix_orders_lab_id", "orders", ["lab_id"])

    op.create_table(
        "lab_pricing",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lab_id", sa.Integer(), nullable=False),
        sa.Column("restoration_type", sa.String(50), nullable=False),
        sa.Column("fixed_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("includes_rush", sa.Boolean(), nullable=False),
        sa.Column("rush_surcharge_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("lab_id", "restoration_type", name="uq_lab_pricing_type"),
    )
    op.create_index("ix_lab_pricing_lab_id", "lab_pricing", ["lab_id"])

    op.create_table(
        "pricing_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rule_name", sa.String(100), nullable=False, unique=True),
        sa.Column("rule_type", pricing_rule_type, nullable=False),
        sa.Column("restoration_type", sa.String(50), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_percentage", sa.Boolean(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    # ----- ledger -----
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"),
                  nullable=False, unique=True),
        sa.Column("invoice_number", sa.String(30), nullable=False, unique=True),
        sa.Column("status", invoice_status, nullable=False),
        sa.Column("status_before_dispute", invoice_status, nullable=True),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("adjustments_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("expenses_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("final_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("generated_at", sa.DateTime(), nullable=True),
        sa.Column("generated_by", sa.String(64), nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("locked_by", sa.String(64), nullable=True),
        sa.Column("finalized_at", sa.DateTime(), nullable=True),
        sa.Column("finalized_by", sa.String(64), nullable=True),
        sa.Column("payment_received_at", sa.DateTime(), nullable=True),
        sa.Column("disputed_at", sa.DateTime(), nullable=True),
        sa.Column("disputed_by", sa.String(64), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("dispute_resolution", dispute_resolution, nullable=True),
        sa.Column("dispute_resolution_notes", sa.Text(), nullable=True),
        sa.Column("dispute_resolved_at", sa.DateTime(), nullable=True),
        sa.Column("dispute_resolved_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "invoice_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("line_type", line_item_type, nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("source_event", sa.String(50), nullable=False),
        sa.Column("source_record_id", sa.Integer(), nullable=True),
        sa.Column("rule_applied", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_invoice_line_items_invoice_id", "invoice_line_items", ["invoice_id"]
    )

    op.create_table(
        "invoice_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("adjustment_type", adjustment_type, nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=False),
        sa.Column("source_event", sa.String(50), nullable=True),
        sa.Column("source_record_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_invoice_adjustments_invoice_id", "invoice_adjustments", ["invoice_id"]
    )

    op.create_table(
        "logistics_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("expense_type", expense_type, nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("recorded_by", sa.String(64), nullable=False),
        sa.Column("receipt_url", sa.String(500), nullable=True),
        sa.Column("incurred_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_logistics_expenses_amount"),
    )
    op.create_index("ix_logistics_expenses_order_id", "logistics_expenses", ["order_id"])
    op.create_index(
        "ix_logistics_expenses_invoice_id", "logistics_expenses", ["invoice_id"]
    )

    op.create_table(
        "billing_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("performed_by", sa.String(64), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_billing_audit_log_invoice_id", "billing_audit_log", ["invoice_id"])
    op.create_index("ix_billing_audit_log_action", "billing_audit_log", ["action"])

    op.create_table(
        "invoice_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("current_value", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "invoice_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("requested_by", sa.String(64), nullable=False),
        sa.Column("status", invoice_request_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=True),
        sa.Column("processed_by", sa.String(64), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_invoice_requests_order_id", "invoice_requests", ["order_id"])
    op.create_index("ix_invoice_requests_status", "invoice_requests", ["status"])


def downgrade() -> None:
    op.drop_table("invoice_requests")
    op.drop_table("invoice_sequences")
    op.drop_table("billing_audit_log")
    op.drop_table("logistics_expenses")
    op.drop_table("invoice_adjustments")
    op.drop_table("invoice_line_items")
    op.drop_table("invoices")
    op.drop_table("pricing_rules")
    op.drop_table("lab_pricing")
    op.drop_table("orders")

    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.drop(bind, checkfirst=True)
