"""
Document numbering.

Numbers are allocated from counter rows in ``document_sequences`` with a
single ``UPDATE ... SET current_value = current_value + 1``. The row lock
taken by that statement is held until the surrounding transaction commits,
so two sessions can never read the same value. Rolling the transaction back
gives the number back.
"""
import logging
import re
from datetime import date
from typing import Callable, Optional, TypeVar, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billdesk.common.exceptions import ConflictError, ValidationError
from billdesk.core.config import settings
from billdesk.modules.ledger.models import DocumentSequence
from billdesk.modules.ledger.schemas import DocumentType

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRAILING_DIGITS = re.compile(r"(\d+)$")

# Column holding the number of each document type, used to recognise
# unique violations caused by a number collision
NUMBER_COLUMNS = {
    DocumentType.QUOTATION: "quotation_number",
    DocumentType.INVOICE: "invoice_number",
    DocumentType.OUTGOING_PAYMENT: "payment_number",
    DocumentType.CLIENT: "client_code",
}


def format_number(document_type: DocumentType, sequence: int, on_date: date) -> str:
    """Render a counter value as a document number."""
    if document_type == DocumentType.QUOTATION:
        return f"QUO-{on_date.year}-{sequence:04d}"
    if document_type == DocumentType.INVOICE:
        return f"INV-{sequence:04d}"
    if document_type == DocumentType.OUTGOING_PAYMENT:
        return f"OP-{sequence:06d}"
    return f"CLT{sequence:04d}"


def parse_sequence(number: str) -> int:
    """Counter value embedded in a document number (its trailing digits)."""
    match = _TRAILING_DIGITS.search(number or "")
    if not match:
        raise ValidationError(f"Not a document number: {number!r}")
    return int(match.group(1))


def is_number_conflict(document_type: DocumentType, error: IntegrityError) -> bool:
    # PostgreSQL reports "Key (quotation_number)=...", SQLite "quotations.quotation_number"
    return NUMBER_COLUMNS[DocumentType(document_type)] in str(error.orig)


class NumberingService:
    def __init__(
        self,
        db: Session,
        today: Callable[[], date] = date.today,
        yearly_reset: Optional[bool] = None
    ):
        self.db = db
        self.today = today
        self.yearly_reset = settings.QUOTATION_NUMBER_YEARLY_RESET if yearly_reset is None else yearly_reset

    def _period_key(self, document_type: DocumentType, on_date: date) -> str:
        if document_type == DocumentType.QUOTATION and self.yearly_reset:
            return str(on_date.year)
        return ""

    def _counter(self, document_type: DocumentType, period_key: str):
        return (
            DocumentSequence.document_type == document_type.value,
            DocumentSequence.period_key == period_key,
        )

    def _ensure_row(self, document_type: DocumentType, period_key: str) -> None:
        """Create the counter row if missing, tolerating a concurrent insert."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"Document numbering is not supported on {dialect}")

        stmt = insert(DocumentSequence).values(
            document_type=document_type.value,
            period_key=period_key,
            current_value=0
        ).on_conflict_do_nothing(index_elements=["document_type", "period_key"])
        self.db.execute(stmt)

    def _increment(self, document_type: DocumentType, period_key: str) -> int:
        stmt = (
            update(DocumentSequence)
            .where(*self._counter(document_type, period_key))
            .values(current_value=DocumentSequence.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount == 0:
            self._ensure_row(document_type, period_key)
            self.db.execute(stmt)

        return self.db.execute(
            select(DocumentSequence.current_value).where(*self._counter(document_type, period_key))
        ).scalar_one()

    def next_number(self, document_type: Union[DocumentType, str], on_date: Optional[date] = None) -> str:
        """
        Allocate the next number for a document type.

        The allocation belongs to the caller's transaction: it becomes
        permanent on commit and is released on rollback.
        """
        document_type = DocumentType(document_type)
        on_date = on_date or self.today()
        period_key = self._period_key(document_type, on_date)

        value = self._increment(document_type, period_key)
        number = format_number(document_type, value, on_date)
        logger.debug(f"Allocated {document_type.value} number {number}")
        return number

    def peek_next(self, document_type: Union[DocumentType, str], on_date: Optional[date] = None) -> str:
        """Next number that would be allocated, without consuming it."""
        document_type = DocumentType(document_type)
        on_date = on_date or self.today()
        period_key = self._period_key(document_type, on_date)

        current = self.db.execute(
            select(DocumentSequence.current_value).where(*self._counter(document_type, period_key))
        ).scalar_one_or_none()
        return format_number(document_type, (current or 0) + 1, on_date)

    def advance_past(self, document_type: Union[DocumentType, str], number: str, on_date: Optional[date] = None) -> None:
        """Move the counter so the next allocation comes after ``number``."""
        document_type = DocumentType(document_type)
        on_date = on_date or self.today()
        period_key = self._period_key(document_type, on_date)
        sequence = parse_sequence(number)

        self._ensure_row(document_type, period_key)
        self.db.execute(
            update(DocumentSequence)
            .where(*self._counter(document_type, period_key), DocumentSequence.current_value < sequence)
            .values(current_value=sequence)
            .execution_options(synchronize_session=False)
        )

    def create_with_number(
        self,
        document_type: Union[DocumentType, str],
        build: Callable[[str], T],
        on_date: Optional[date] = None
    ) -> T:
        """
        Run ``build(number)`` and flush it, retrying on a number collision.

        ``build`` must perform every write of the operation: on a collision
        the whole transaction is rolled back, the counter is moved past the
        colliding number and ``build`` runs again with a fresh one. Other
        integrity errors propagate. The caller commits.
        """
        document_type = DocumentType(document_type)
        attempts = settings.NUMBERING_MAX_RETRIES

        for attempt in range(1, attempts + 1):
            number = self.next_number(document_type, on_date)
            try:
                result = build(number)
                self.db.flush()
                return result
            except IntegrityError as e:
                if not is_number_conflict(document_type, e):
                    raise
                self.db.rollback()
                logger.warning(
                    f"{document_type.value} number {number} already taken "
                    f"(attempt {attempt}/{attempts}), retrying"
                )
                self.advance_past(document_type, number, on_date)

        raise ConflictError(
            f"Could not allocate a unique {document_type.value} number after {attempts} attempts"
        )
