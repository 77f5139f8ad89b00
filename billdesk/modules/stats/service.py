from sqlalchemy.orm import Session
from sqlalchemy import func, and_
from datetime import date
from typing import Callable
import logging

from billdesk.modules.clients.models import Client
from billdesk.modules.invoices.models import Invoice, InvoiceStatus
from billdesk.modules.ledger.calculator import ZERO, to_money
from billdesk.modules.ledger.status import OVERDUE_ELIGIBLE
from billdesk.modules.outgoing_payments.models import OutgoingPayment, OutgoingPaymentStatus
from billdesk.modules.products.models import Product
from billdesk.modules.quotations.models import Quotation
from billdesk.modules.staff.models import Staff
from billdesk.modules.stats.schemas import DashboardStats, OutgoingSummary, ReceivablesSummary

logger = logging.getLogger(__name__)


class StatsService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today

    def _count_by_status(self, model) -> dict:
        rows = self.db.query(model.status, func.count(model.id)).group_by(model.status).all()
        return {status.value: count for status, count in rows}

    def get_dashboard_stats(self) -> DashboardStats:
        """Resumen para el panel: catálogo, documentos, cartera y egresos"""
        # Cancelled and draft invoices are not receivables
        receivable = Invoice.status.notin_([InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED])
        invoiced, collected = self.db.query(
            func.coalesce(func.sum(Invoice.total_amount), 0),
            func.coalesce(func.sum(Invoice.amount_paid), 0)
        ).filter(receivable).one()

        overdue_count, overdue_balance = self.db.query(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.balance_due), 0)
        ).filter(and_(
            Invoice.status.in_([InvoiceStatus(s) for s in OVERDUE_ELIGIBLE]),
            Invoice.balance_due > 0,
            Invoice.due_date < self.today()
        )).one()

        outgoing_rows = self.db.query(
            OutgoingPayment.status,
            func.coalesce(func.sum(OutgoingPayment.amount), 0)
        ).group_by(OutgoingPayment.status).all()
        outgoing_by_status = {status.value: to_money(total) for status, total in outgoing_rows}

        return DashboardStats(
            clients=self.db.query(func.count(Client.id)).scalar(),
            active_clients=self.db.query(func.count(Client.id)).filter(Client.status.is_(True)).scalar(),
            staff=self.db.query(func.count(Staff.id)).scalar(),
            products=self.db.query(func.count(Product.id)).scalar(),
            quotations_by_status=self._count_by_status(Quotation),
            invoices_by_status=self._count_by_status(Invoice),
            receivables=ReceivablesSummary(
                invoiced_total=to_money(invoiced),
                collected_total=to_money(collected),
                outstanding_balance=to_money(invoiced) - to_money(collected),
                overdue_count=overdue_count,
                overdue_balance=to_money(overdue_balance)
            ),
            outgoing=OutgoingSummary(
                total_paid=outgoing_by_status.get(OutgoingPaymentStatus.PAID.value, ZERO),
                by_status=outgoing_by_status
            )
        )
