"""
Invoice requests.

The ordering doctor can ask for the invoice of a delivered order
instead of waiting for the lab. Staff approve the request, which
generates the invoice, or reject it with a reason. Only one
request per order may be pending at a time.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from lab_billing.exceptions import (
    AlreadyExists,
    Forbidden,
    InvalidReason,
    InvalidStatus,
    InvoiceRequestNotFound,
    OrderNotFound,
)
from lab_billing.logging_config import get_logger
from lab_billing.models.enums import InvoiceRequestStatus, UserRole
from lab_billing.models.invoice_request import InvoiceRequest
from lab_billing.models.order import Order
from lab_billing.schemas.actor import Actor
from lab_billing.schemas.invoice_request import InvoiceRequestCreate
from lab_billing.services.invoice_generator import InvoiceGenerator
from lab_billing.services.ledger_service import STAFF_ROLES
from lab_billing.services.permissions import require_role

logger = get_logger("services.invoice_request")


class InvoiceRequestService:

    def __init__(self, db: Session):
        self.db = db
        self.generator = InvoiceGenerator(db)

    def _get_pending_for_update(self, request_id: int) -> InvoiceRequest:
        invoice_request = self.db.execute(
            select(InvoiceRequest)
            .where(InvoiceRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not invoice_request:
            raise InvoiceRequestNotFound(request_id)
        if invoice_request.status != InvoiceRequestStatus.PENDING:
            raise InvalidStatus(
                f"Invoice request {request_id} was already "
                f"{invoice_request.status.value}",
                details={
                    "request_id": request_id,
                    "status": invoice_request.status.value,
                },
            )
        return invoice_request

    def request_invoice(
        self, request: InvoiceRequestCreate, actor: Actor
    ) -> InvoiceRequest:
        order = self.db.get(Order, request.order_id)
        if not order:
            raise OrderNotFound(request.order_id)
        if actor.role != UserRole.DOCTOR or actor.user_id != order.doctor_id:
            raise Forbidden(
                "Only the ordering doctor may request an invoice",
                details={"action": "request invoices", "order_id": order.id},
            )

        self.generator.check_eligible(order)

        pending = self.db.execute(
            select(InvoiceRequest).where(
                InvoiceRequest.order_id == order.id,
                InvoiceRequest.status == InvoiceRequestStatus.PENDING,
            )
        ).scalar_one_or_none()
        if pending:
            raise AlreadyExists(
                f"Order {order.order_number} already has a pending invoice request",
                details={"order_id": order.id, "request_id": pending.id},
            )

        invoice_request = InvoiceRequest(
            order_id=order.id,
            requested_by=actor.user_id,
            status=InvoiceRequestStatus.PENDING,
            notes=request.notes,
        )
        self.db.add(invoice_request)
        self.db.flush()

        logger.info(
            "invoice_requested",
            extra={"request_id": invoice_request.id, "order_id": order.id},
        )
        return invoice_request

    def approve_request(self, request_id: int, actor: Actor) -> InvoiceRequest:
        """Generate the invoice for a pending request."""
        require_role(actor, STAFF_ROLES, "process invoice requests")
        invoice_request = self._get_pending_for_update(request_id)

        invoice = self.generator.generate(invoice_request.order_id, actor)

        invoice_request.status = InvoiceRequestStatus.GENERATED
        invoice_request.invoice_id = invoice.id
        invoice_request.processed_by = actor.user_id
        invoice_request.processed_at = datetime.utcnow()
        self.db.flush()

        logger.info(
            "invoice_request_approved",
            extra={"request_id": request_id, "invoice_id": invoice.id},
        )
        return invoice_request

    def reject_request(
        self, request_id: int, reason: str, actor: Actor
    ) -> InvoiceRequest:
        require_role(actor, STAFF_ROLES, "process invoice requests")
        cleaned = (reason or "").strip()
        if not cleaned:
            raise InvalidReason(
                "A rejection reason is required",
                details={"field": "reason"},
            )
        invoice_request = self._get_pending_for_update(request_id)

        invoice_request.status = InvoiceRequestStatus.REJECTED
        invoice_request.rejection_reason = cleaned
        invoice_request.processed_by = actor.user_id
        invoice_request.processed_at = datetime.utcnow()
        self.db.flush()

        logger.info(
            "invoice_request_rejected",
            extra={"request_id": request_id, "processed_by": actor.user_id},
        )
        return invoice_request

    def list_requests(
        self, status: InvoiceRequestStatus | None = None
    ) -> list[InvoiceRequest]:
        query = select(InvoiceRequest)
        if status is not None:
            query = query.where(InvoiceRequest.status == status)
        query = query.order_by(InvoiceRequest.requested_at.desc(), InvoiceRequest.id.desc())
        return list(self.db.execute(query).scalars().all())
