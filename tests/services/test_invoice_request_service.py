"""
Tests for the InvoiceRequestService.
"""

import pytest

from lab_billing.exceptions import (
    AlreadyExists,
    Forbidden,
    InvalidReason,
    InvalidStatus,
    InvoiceRequestNotFound,
    NotEligible,
)
from lab_billing.models import InvoiceRequestStatus, InvoiceStatus, OrderStatus
from lab_billing.schemas.invoice_request import InvoiceRequestCreate
from lab_billing.services.invoice_request_service import InvoiceRequestService
from lab_billing.services.ledger_service import LedgerService


def request_for(db_session, order, actor, notes=None):
    invoice_request = InvoiceRequestService(db_session).request_invoice(
        InvoiceRequestCreate(order_id=order.id, notes=notes), actor
    )
    db_session.commit()
    return invoice_request


class TestRequestInvoice:

    def test_doctor_requests_invoice(self, db_session, make_order, doctor):
        order = make_order()

        invoice_request = request_for(db_session, order, doctor, notes="for my records")

        assert invoice_request.status == InvoiceRequestStatus.PENDING
        assert invoice_request.requested_by == "doctor-1"
        assert invoice_request.notes == "for my records"

    def test_only_ordering_doctor(self, db_session, make_order, other_doctor, lab_staff):
        order = make_order()

        with pytest.raises(Forbidden):
            request_for(db_session, order, other_doctor)
        with pytest.raises(Forbidden):
            request_for(db_session, order, lab_staff)

    def test_undelivered_order_not_eligible(self, db_session, make_order, doctor):
        order = make_order(status=OrderStatus.READY_FOR_DELIVERY, delivery_confirmed_at=None)

        with pytest.raises(NotEligible):
            request_for(db_session, order, doctor)

    def test_second_pending_request_rejected(self, db_session, make_order, doctor):
        order = make_order()
        request_for(db_session, order, doctor)

        with pytest.raises(AlreadyExists, match="pending invoice request"):
            request_for(db_session, order, doctor)

    def test_order_with_invoice_cannot_be_requested(
        self, db_session, make_invoice, doctor
    ):
        invoice = make_invoice()

        with pytest.raises(AlreadyExists):
            request_for(db_session, invoice.order, doctor)


class TestProcessRequest:

    def test_approve_generates_invoice(
        self, db_session, make_order, platform_pricing, doctor, lab_staff
    ):
        order = make_order()
        invoice_request = request_for(db_session, order, doctor)

        processed = InvoiceRequestService(db_session).approve_request(
            invoice_request.id, lab_staff
        )
        db_session.commit()

        assert processed.status == InvoiceRequestStatus.GENERATED
        assert processed.processed_by == "staff-1"
        invoice = LedgerService(db_session).get_invoice(processed.invoice_id)
        assert invoice.order_id == order.id
        assert invoice.status == InvoiceStatus.GENERATED

    def test_reject_records_reason(self, db_session, make_order, doctor, admin):
        invoice_request = request_for(db_session, make_order(), doctor)

        processed = InvoiceRequestService(db_session).reject_request(
            invoice_request.id, "  order is under warranty  ", admin
        )
        db_session.commit()

        assert processed.status == InvoiceRequestStatus.REJECTED
        assert processed.rejection_reason == "order is under warranty"
        assert processed.invoice_id is None

    def test_reject_requires_reason(self, db_session, make_order, doctor, admin):
        invoice_request = request_for(db_session, make_order(), doctor)

        with pytest.raises(InvalidReason):
            InvoiceRequestService(db_session).reject_request(invoice_request.id, " ", admin)

    def test_processed_request_cannot_be_processed_again(
        self, db_session, make_order, doctor, admin
    ):
        invoice_request = request_for(db_session, make_order(), doctor)
        service = InvoiceRequestService(db_session)
        service.reject_request(invoice_request.id, "duplicate request", admin)
        db_session.commit()

        with pytest.raises(InvalidStatus, match="already rejected"):
            service.approve_request(invoice_request.id, admin)

    def test_doctor_cannot_process(self, db_session, make_order, doctor):
        invoice_request = request_for(db_session, make_order(), doctor)

        with pytest.raises(Forbidden):
            InvoiceRequestService(db_session).approve_request(invoice_request.id, doctor)

    def test_unknown_request(self, db_session, admin):
        with pytest.raises(InvoiceRequestNotFound):
            InvoiceRequestService(db_session).approve_request(999, admin)

    def test_list_filters_by_status(self, db_session, make_order, doctor, admin):
        first = request_for(db_session, make_order(), doctor)
        second = request_for(db_session, make_order(), doctor)
        service = InvoiceRequestService(db_session)
        service.reject_request(first.id, "not billable", admin)
        db_session.commit()

        pending = service.list_requests(InvoiceRequestStatus.PENDING)

        assert [r.id for r in pending] == [second.id]
        assert len(service.list_requests()) == 2
