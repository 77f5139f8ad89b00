"""
Ledger reconciliation: keeps computed money fields consistent with line
items, and amount_paid consistent with the recorded payments.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from billdesk.common.exceptions import (
    InvalidTransitionError, OverpaymentError, ValidationError
)
from billdesk.modules.clients.models import Client
from billdesk.modules.invoices.models import Invoice, InvoicePayment, InvoiceStatus, PaymentMethod
from billdesk.modules.ledger.calculator import ZERO, compute_totals, line_amount, to_money
from billdesk.modules.ledger.schemas import DiscountPolicy
from billdesk.modules.ledger.status import INVOICE_MACHINE, PAYABLE, effective_status, is_invoice_overdue

logger = logging.getLogger(__name__)


def balance_due(invoice: Invoice) -> Decimal:
    return to_money(invoice.balance_due)


class LedgerReconciler:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today

    def recompute(self, document: Any):
        """
        Re-derive line amounts and totals of a quotation or invoice.

        Running it twice gives the same result. For invoices the amount
        already paid must still fit in the new total.
        """
        for item in document.line_items:
            item.amount = line_amount(item.quantity, item.unit_price)

        discount = None
        if getattr(document, "discount_type", None) is not None:
            discount = DiscountPolicy(
                discount_type=document.discount_type,
                discount_value=document.discount_value or ZERO
            )

        totals = compute_totals(document.line_items, discount, document.tax_rate_percent or ZERO)

        if isinstance(document, Invoice):
            amount_paid = to_money(document.amount_paid or ZERO)
            if amount_paid > totals.total_amount:
                raise OverpaymentError(totals.total_amount, amount_paid)
            document.amount_paid = amount_paid
        else:
            document.discount_amount = totals.discount_amount

        document.subtotal = totals.subtotal
        document.tax_amount = totals.tax_amount
        document.total_amount = totals.total_amount
        return document

    def ensure_status_change(self, invoice: Invoice, requested: InvoiceStatus) -> None:
        """Validate a requested invoice status against the lifecycle and the balance."""
        INVOICE_MACHINE.ensure_transition(invoice.status, requested)
        if requested == InvoiceStatus.PAID and balance_due(invoice) != ZERO:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} cannot be marked paid with a balance of {balance_due(invoice)}"
            )

    def apply_payment(
        self,
        invoice: Invoice,
        amount: Any,
        user_id: int,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        reference: Optional[str] = None,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None
    ) -> InvoicePayment:
        """
        Change amount_paid by ``amount`` and record it as a payment row.

        A negative amount reverses part of an earlier payment. The invoice
        moves to pending_payment on its first payment and to paid once the
        balance reaches zero.
        """
        delta = to_money(amount)
        if delta == ZERO:
            raise ValidationError("Payment amount cannot be zero")

        current_paid = to_money(invoice.amount_paid or ZERO)
        new_paid = current_paid + delta
        total = to_money(invoice.total_amount)
        settles = new_paid == total

        if invoice.status.value not in PAYABLE:
            target = InvoiceStatus.PAID if settles else InvoiceStatus.PENDING_PAYMENT
            raise InvalidTransitionError("invoice", invoice.status.value, target.value)
        if new_paid < ZERO:
            raise ValidationError(f"Amount paid cannot drop below zero (would be {new_paid})")
        if new_paid > total:
            raise OverpaymentError(total, new_paid)

        payment_date = payment_date or self.today()
        invoice.amount_paid = new_paid

        payment = InvoicePayment(
            amount=delta,
            method=method,
            reference=reference,
            payment_date=payment_date,
            notes=notes,
            created_by=user_id
        )
        invoice.payments.append(payment)

        old_status = invoice.status
        if invoice.status == InvoiceStatus.SENT:
            invoice.status = InvoiceStatus.PENDING_PAYMENT
        if settles:
            invoice.status = InvoiceStatus.PAID

        self._update_client_aggregate(invoice.client_id, delta, payment_date)

        logger.info(
            f"Payment of {delta} applied to invoice {invoice.invoice_number}: "
            f"paid {current_paid} -> {new_paid}, status {old_status.value} -> {invoice.status.value}"
        )
        return payment

    def _update_client_aggregate(self, client_id: int, delta: Decimal, payment_date: date) -> None:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            # Historical invoices keep their snapshot even if the client row is gone
            return
        client.total_spent = to_money((client.total_spent or ZERO) + delta)
        if delta > 0 and (client.last_payment is None or payment_date > client.last_payment):
            client.last_payment = payment_date

    def is_overdue(self, invoice: Invoice) -> bool:
        return is_invoice_overdue(invoice.status, invoice.due_date, balance_due(invoice), self.today())

    def effective_status(self, invoice: Invoice) -> str:
        return effective_status(invoice.status, invoice.due_date, balance_due(invoice), self.today())
