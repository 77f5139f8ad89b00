"""Tests para el resumen del panel"""

from datetime import date, timedelta
from decimal import Decimal

from billdesk.modules.invoices.schemas import InvoiceCreate, PaymentCreate
from billdesk.modules.invoices.service import InvoiceService
from billdesk.modules.outgoing_payments.schemas import OutgoingPaymentCreate
from billdesk.modules.outgoing_payments.service import OutgoingPaymentService
from billdesk.modules.stats.service import StatsService

TODAY = date(2026, 6, 30)


def fixed_today():
    return TODAY


class TestDashboardStats:

    def test_receivables_and_outgoing(self, db_session, sample_client, sample_product, sample_staff):
        invoices = InvoiceService(db_session, today=fixed_today)

        overdue = invoices.create_invoice(InvoiceCreate(
            client_id=sample_client.id,
            issue_date=TODAY - timedelta(days=60),
            due_date=TODAY - timedelta(days=30),
            status="sent",
            line_items=[{"product_name": "Audit", "quantity": 1, "unit_price": "100"}]
        ), 1)
        invoices.record_payment(overdue.id, PaymentCreate(amount=Decimal("50")), 1)

        invoices.create_invoice(InvoiceCreate(
            client_id=sample_client.id,
            issue_date=TODAY,
            due_date=TODAY + timedelta(days=30),
            line_items=[{"product_name": "Draft work", "quantity": 1, "unit_price": "999"}]
        ), 1)

        OutgoingPaymentService(db_session).record_payment(OutgoingPaymentCreate(
            payment_category="staff_salary", staff_id=sample_staff.id, amount=Decimal("300"), status="paid"
        ), 1)

        stats = StatsService(db_session, today=fixed_today).get_dashboard_stats()

        assert (stats.clients, stats.staff, stats.products) == (1, 1, 1)
        assert stats.invoices_by_status == {"pending_payment": 1, "draft": 1}
        assert stats.receivables.invoiced_total == Decimal("100.00")
        assert stats.receivables.collected_total == Decimal("50.00")
        assert stats.receivables.outstanding_balance == Decimal("50.00")
        assert stats.receivables.overdue_count == 1
        assert stats.receivables.overdue_balance == Decimal("50.00")
        assert stats.outgoing.total_paid == Decimal("300.00")

    def test_endpoint(self, api_client):
        response = api_client.get("/stats/")
        assert response.status_code == 200
        assert response.json()["clients"] == 0
