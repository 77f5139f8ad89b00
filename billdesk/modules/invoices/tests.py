"""
Tests para el módulo de Facturas

Cubren creación con snapshot y totales, edición con recálculo, pagos
parciales y totales, historial de pagos, vencimiento derivado y los
rechazos (sobrepago, campos calculados, transiciones inválidas).
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billdesk.common.exceptions import ConflictError, OverpaymentError, ValidationError
from billdesk.modules.invoices.models import Invoice, InvoiceStatus
from billdesk.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate
from billdesk.modules.invoices.service import InvoiceService

TODAY = date(2026, 3, 15)


def fixed_today():
    return TODAY


@pytest.fixture
def invoice_payload(sample_client, sample_product):
    return {
        "client_id": sample_client.id,
        "issue_date": str(TODAY),
        "due_date": str(TODAY + timedelta(days=30)),
        "tax_rate_percent": "10",
        "status": "sent",
        "line_items": [{"product_id": sample_product.id, "quantity": 2}]
    }


@pytest.fixture
def service(db_session):
    return InvoiceService(db_session, today=fixed_today)


# ===== TESTS DE API =====

class TestInvoiceAPI:

    def test_create_invoice(self, api_client, invoice_payload):
        response = api_client.post("/invoices/", json=invoice_payload)
        assert response.status_code == 201
        data = response.json()

        assert data["invoice_number"] == "INV-0001"
        assert data["client_name"] == "Acme Logistics"
        assert Decimal(data["subtotal"]) == Decimal("120.00")
        assert Decimal(data["tax_amount"]) == Decimal("12.00")
        assert Decimal(data["total_amount"]) == Decimal("132.00")
        assert Decimal(data["balance_due"]) == Decimal("132.00")
        assert data["line_items"][0]["product_name"] == "Website Maintenance"
        assert data["version"] == 1

    def test_numbers_increase(self, api_client, invoice_payload):
        first = api_client.post("/invoices/", json=invoice_payload).json()
        second = api_client.post("/invoices/", json=invoice_payload).json()
        assert (first["invoice_number"], second["invoice_number"]) == ("INV-0001", "INV-0002")

    def test_computed_fields_are_rejected(self, api_client, invoice_payload):
        invoice_payload["total_amount"] = "1.00"
        assert api_client.post("/invoices/", json=invoice_payload).status_code == 422

        invoice_payload.pop("total_amount")
        invoice_payload["line_items"][0]["amount"] = "999"
        assert api_client.post("/invoices/", json=invoice_payload).status_code == 422

    def test_balance_due_cannot_be_patched(self, api_client, invoice_payload):
        invoice = api_client.post("/invoices/", json=invoice_payload).json()
        response = api_client.patch(f"/invoices/{invoice['id']}", json={"balance_due": "0"})
        assert response.status_code == 422

    def test_due_date_before_issue_date(self, api_client, invoice_payload):
        invoice_payload["due_date"] = str(TODAY - timedelta(days=1))
        assert api_client.post("/invoices/", json=invoice_payload).status_code == 422

    def test_unknown_client(self, api_client, invoice_payload):
        invoice_payload["client_id"] = 999
        response = api_client.post("/invoices/", json=invoice_payload)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_cannot_start_as_paid(self, api_client, invoice_payload):
        invoice_payload["status"] = "paid"
        response = api_client.post("/invoices/", json=invoice_payload)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_payments_flow(self, api_client, invoice_payload):
        invoice = api_client.post("/invoices/", json=invoice_payload).json()

        response = api_client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "32.00", "method": "card"})
        assert response.status_code == 201

        detail = api_client.get(f"/invoices/{invoice['id']}").json()
        assert detail["status"] == "pending_payment"
        assert Decimal(detail["balance_due"]) == Decimal("100.00")

        api_client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "100.00"})
        detail = api_client.get(f"/invoices/{invoice['id']}").json()
        assert detail["status"] == "paid"
        assert Decimal(detail["balance_due"]) == Decimal("0.00")

        payments = api_client.get(f"/invoices/{invoice['id']}/payments").json()
        assert [Decimal(p["amount"]) for p in payments] == [Decimal("32.00"), Decimal("100.00")]

    def test_overpayment(self, api_client, invoice_payload):
        invoice = api_client.post("/invoices/", json=invoice_payload).json()
        response = api_client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "132.01"})
        assert response.status_code == 400
        assert response.json()["code"] == "OVERPAYMENT"

    def test_payment_on_draft(self, api_client, invoice_payload):
        invoice_payload["status"] = "draft"
        invoice = api_client.post("/invoices/", json=invoice_payload).json()
        response = api_client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "10"})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_requires_token(self, api_client, invoice_payload):
        api_client.headers.pop("Authorization")
        assert api_client.get("/invoices/").status_code in (401, 403)

    def test_delete_without_payments(self, api_client, invoice_payload):
        invoice = api_client.post("/invoices/", json=invoice_payload).json()
        assert api_client.delete(f"/invoices/{invoice['id']}").status_code == 204
        assert api_client.get(f"/invoices/{invoice['id']}").status_code == 404

    def test_delete_with_payments_is_rejected(self, api_client, invoice_payload):
        invoice = api_client.post("/invoices/", json=invoice_payload).json()
        api_client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "10"})
        assert api_client.delete(f"/invoices/{invoice['id']}").status_code == 400

    @pytest.mark.parametrize("field, value", [
        ("quantity", "1.0004"),
        ("unit_price", "10.005"),
    ])
    def test_line_precision_beyond_storage_is_rejected(self, api_client, invoice_payload, field, value):
        invoice_payload["line_items"][0][field] = value
        assert api_client.post("/invoices/", json=invoice_payload).status_code == 422

    @pytest.mark.parametrize("value", ["10.125", "1000"])
    def test_tax_rate_must_fit_its_column(self, api_client, invoice_payload, value):
        invoice_payload["tax_rate_percent"] = value
        assert api_client.post("/invoices/", json=invoice_payload).status_code == 422


# ===== TESTS DE SERVICIO =====

class TestInvoiceService:

    def create(self, service, sample_client, **overrides):
        data = {
            "client_id": sample_client.id,
            "issue_date": TODAY,
            "due_date": TODAY + timedelta(days=30),
            "status": "sent",
            "line_items": [{"product_name": "Retainer", "quantity": 1, "unit_price": "500"}],
        }
        data.update(overrides)
        return service.create_invoice(InvoiceCreate(**data), 1)

    def test_edit_recomputes_totals(self, service, sample_client):
        invoice = self.create(service, sample_client)
        updated = service.update_invoice(invoice.id, InvoiceUpdate(
            tax_rate_percent=Decimal("20"),
            line_items=[{"product_name": "Retainer", "quantity": 2, "unit_price": "150"}]
        ), 1)

        assert updated.subtotal == Decimal("300.00")
        assert updated.tax_amount == Decimal("60.00")
        assert updated.total_amount == Decimal("360.00")
        assert len(updated.line_items) == 1
        assert updated.version == 2

    def test_amount_paid_in_patch_is_recorded_as_payment(self, service, sample_client):
        invoice = self.create(service, sample_client)
        updated = service.update_invoice(invoice.id, InvoiceUpdate(amount_paid=Decimal("500")), 1)

        assert updated.status == InvoiceStatus.PAID
        assert [p.amount for p in updated.payments] == [Decimal("500.00")]

    def test_edit_below_amount_paid_writes_nothing(self, service, sample_client, db_session):
        invoice = self.create(service, sample_client)
        service.update_invoice(invoice.id, InvoiceUpdate(amount_paid=Decimal("300")), 1)

        with pytest.raises(OverpaymentError):
            service.update_invoice(invoice.id, InvoiceUpdate(
                line_items=[{"product_name": "Retainer", "quantity": 1, "unit_price": "100"}]
            ), 1)

        stored = db_session.query(Invoice).filter(Invoice.id == invoice.id).one()
        assert stored.total_amount == Decimal("500.00")
        assert stored.amount_paid == Decimal("300.00")

    def test_mark_paid_requires_zero_balance(self, service, sample_client):
        invoice = self.create(service, sample_client)
        service.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.PENDING_PAYMENT), 1)

        with pytest.raises(ValidationError):
            service.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.PAID), 1)

        paid = service.update_invoice(
            invoice.id, InvoiceUpdate(status=InvoiceStatus.PAID, amount_paid=Decimal("500")), 1
        )
        assert paid.status == InvoiceStatus.PAID

    def test_stale_version_is_rejected(self, service, sample_client):
        invoice = self.create(service, sample_client)
        service.update_invoice(invoice.id, InvoiceUpdate(notes="first edit", version=1), 1)

        with pytest.raises(ConflictError):
            service.update_invoice(invoice.id, InvoiceUpdate(notes="second edit", version=1), 1)

    def test_overdue_is_derived_on_read(self, service, sample_client):
        """Vencida con saldo 50 -> effective_status overdue aunque esté 'sent'"""
        invoice = self.create(
            service, sample_client,
            issue_date=TODAY - timedelta(days=40),
            due_date=TODAY - timedelta(days=10),
            line_items=[{"product_name": "Retainer", "quantity": 1, "unit_price": "50"}]
        )

        loaded = service.get_invoice(invoice.id)
        assert loaded.status == InvoiceStatus.SENT
        assert loaded.is_overdue is True
        assert loaded.effective_status == "overdue"

        listing = service.list_invoices(overdue=True)
        assert [i.id for i in listing["items"]] == [invoice.id]
        assert service.list_invoices(overdue=False)["total"] == 0

    def test_client_change_resnapshots(self, service, sample_client, db_session):
        from billdesk.modules.clients.models import Client
        other = Client(client_code="CLT9000", business_name="Globex", email="ap@globex.com", created_by=1)
        db_session.add(other)
        db_session.commit()

        invoice = self.create(service, sample_client, status="draft")
        updated = service.update_invoice(invoice.id, InvoiceUpdate(client_id=other.id), 1)

        assert (updated.client_id, updated.client_name, updated.client_email) == (other.id, "Globex", "ap@globex.com")

    def test_snapshot_survives_client_rename(self, service, sample_client, db_session):
        invoice = self.create(service, sample_client)
        sample_client.business_name = "Acme Renamed"
        db_session.commit()

        assert service.get_invoice(invoice.id).client_name == "Acme Logistics"

    def test_paid_invoice_cannot_be_edited(self, service, sample_client):
        invoice = self.create(service, sample_client)
        service.update_invoice(invoice.id, InvoiceUpdate(amount_paid=Decimal("500")), 1)

        with pytest.raises(ValidationError):
            service.update_invoice(invoice.id, InvoiceUpdate(tax_rate_percent=Decimal("5")), 1)

    def test_unrelated_edit_keeps_totals(self, service, sample_client, db_session):
        """Lo guardado ya está a la escala de las columnas: tocar las notas no cambia montos"""
        invoice = self.create(
            service, sample_client,
            tax_rate_percent=Decimal("7.25"),
            line_items=[{"product_name": "Support hours", "quantity": "2.125", "unit_price": "33.33"}]
        )
        before = (invoice.line_items[0].amount, invoice.subtotal, invoice.tax_amount, invoice.total_amount)
        assert before == (Decimal("70.83"), Decimal("70.83"), Decimal("5.14"), Decimal("75.97"))

        db_session.expire_all()
        touched = service.update_invoice(invoice.id, InvoiceUpdate(notes="touch"), 1)

        line = touched.line_items[0]
        assert line.amount == (line.quantity * line.unit_price).quantize(Decimal("0.01"))
        assert (line.amount, touched.subtotal, touched.tax_amount, touched.total_amount) == before
