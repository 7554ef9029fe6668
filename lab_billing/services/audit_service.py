"""
Audit trail: one immutable entry per billing mutation.

Entries are flushed in the caller's transaction, never committed
here, so a mutation and its audit entry persist together or not
at all.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from lab_billing.logging_config import get_logger
from lab_billing.models.audit_log import BillingAuditLog
from lab_billing.models.enums import AuditAction
from lab_billing.models.invoice import Invoice

logger = get_logger("services.audit")


def _json_safe(value: Any) -> Any:
    """Convert snapshot values into something the JSON column accepts."""
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        invoice: Invoice,
        action: AuditAction,
        actor_id: str | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> BillingAuditLog:
        """Append one audit entry for the invoice."""
        entry = BillingAuditLog(
            invoice_id=invoice.id,
            action=action,
            performed_by=actor_id,
            old_values=_json_safe(old_values) if old_values else None,
            new_values=_json_safe(new_values) if new_values else None,
            reason=reason,
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(
            "billing_audit_recorded",
            extra={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "action": action.value,
                "performed_by": actor_id,
            },
        )
        return entry

    def get_entries(self, invoice_id: int) -> list[BillingAuditLog]:
        """Audit trail for an invoice, oldest first."""
        return list(self.db.execute(
            select(BillingAuditLog)
            .where(BillingAuditLog.invoice_id == invoice_id)
            .order_by(BillingAuditLog.id)
        ).scalars().all())
