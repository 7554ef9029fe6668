"""
SequenceService -- collision-free invoice numbers.

Each numbering period has one counter row in invoice_sequences.
The row is locked with SELECT ... FOR UPDATE, incremented and
flushed inside the caller's transaction, so the number is only
consumed when that transaction commits. The next value is never
derived from MAX(invoice_number) + 1.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from lab_billing.config import get_settings
from lab_billing.logging_config import get_logger
from lab_billing.models.invoice_sequence import InvoiceSequence

logger = get_logger("services.sequence")


class SequenceService:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def _lock_counter(self, sequence_name: str) -> InvoiceSequence | None:
        return self.db.execute(
            select(InvoiceSequence)
            .where(InvoiceSequence.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row, increment it and return the new value.

        The first use of a sequence creates its row. Two transactions
        racing to create the same row collide on the unique name; the
        loser's flush fails and its whole operation is rolled back by
        the caller's transaction boundary.
        """
        counter = self._lock_counter(sequence_name)
        if counter is None:
            counter = InvoiceSequence(name=sequence_name, current_value=0)
            self.db.add(counter)
            self.db.flush()

        counter.current_value += 1
        self.db.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_invoice_number(self, issued_at: datetime) -> str:
        """
        Allocate the next invoice number for the month of issued_at.

        Format: INV-YYYYMM-NNNN. Numbering restarts every month.
        """
        period = issued_at.strftime("%Y%m")
        value = self.next_value(f"invoice:{period}")
        return f"{self.settings.INVOICE_NUMBER_PREFIX}-{period}-{value:04d}"
