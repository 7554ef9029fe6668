"""
Tests for the SequenceService.
"""

from datetime import datetime

from lab_billing.models.invoice_sequence import InvoiceSequence
from lab_billing.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_use_creates_counter_row(self, db_session):
        assert db_session.query(InvoiceSequence).count() == 0

        assert SequenceService(db_session).next_value("invoice:202601") == 1
        assert db_session.query(InvoiceSequence).one().name == "invoice:202601"

    def test_values_increase_by_one(self, db_session):
        service = SequenceService(db_session)

        values = [service.next_value("invoice:202601") for _ in range(3)]
        db_session.commit()

        assert values == [1, 2, 3]
        assert db_session.query(InvoiceSequence).one().current_value == 3

    def test_sequences_are_independent(self, db_session):
        service = SequenceService(db_session)
        service.next_value("invoice:202601")
        service.next_value("invoice:202601")

        assert service.next_value("invoice:202602") == 1

    def test_invoice_number_restarts_each_month(self, db_session):
        service = SequenceService(db_session)

        january = service.next_invoice_number(datetime(2026, 1, 31))
        february = service.next_invoice_number(datetime(2026, 2, 1))
        january_again = service.next_invoice_number(datetime(2026, 1, 15))

        assert january == "INV-202601-0001"
        assert february == "INV-202602-0001"
        assert january_again == "INV-202601-0002"
