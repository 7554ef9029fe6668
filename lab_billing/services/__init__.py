"""Business logic services."""

from lab_billing.services.audit_service import AuditService
from lab_billing.services.sequence_service import SequenceService
from lab_billing.services.ledger_service import LedgerService
from lab_billing.services.invoice_generator import InvoiceGenerator
from lab_billing.services.invoice_state_machine import InvoiceStateMachine
from lab_billing.services.payment_service import PaymentService
from lab_billing.services.dispute_service import DisputeService
from lab_billing.services.invoice_query_service import InvoiceQueryService
from lab_billing.services.invoice_request_service import InvoiceRequestService

__all__ = [
    "AuditService",
    "SequenceService",
    "LedgerService",
    "InvoiceGenerator",
    "InvoiceStateMachine",
    "PaymentService",
    "DisputeService",
    "InvoiceQueryService",
    "InvoiceRequestService",
]
