"""
Tests para el módulo de Cotizaciones

Cubren numeración QUO-{año}, totales con descuento, ciclo de estados,
edición restringida, versión optimista y conversión a factura.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billdesk.common.exceptions import ConflictError, InvalidTransitionError, ValidationError
from billdesk.modules.invoices.models import InvoiceStatus
from billdesk.modules.quotations.models import QuotationStatus
from billdesk.modules.quotations.schemas import QuotationConvert, QuotationCreate, QuotationUpdate
from billdesk.modules.quotations.service import QuotationService

TODAY = date(2026, 5, 4)


def fixed_today():
    return TODAY


@pytest.fixture
def service(db_session):
    return QuotationService(db_session, today=fixed_today)


def create(service, client_id, **overrides):
    data = {
        "client_id": client_id,
        "valid_until_date": TODAY + timedelta(days=15),
        "discount_type": "percentage",
        "discount_value": "10",
        "tax_rate_percent": "5",
        "line_items": [{"product_name": "Discovery workshop", "quantity": 1, "unit_price": "200"}],
    }
    data.update(overrides)
    return service.create_quotation(QuotationCreate(**data), 1)


# ===== TESTS DE API =====

class TestQuotationAPI:

    def test_create_quotation(self, api_client, sample_client, sample_product):
        response = api_client.post("/quotations/", json={
            "client_id": sample_client.id,
            "quotation_date": "2026-02-01",
            "valid_until_date": "2026-02-28",
            "discount_type": "fixed",
            "discount_value": "20",
            "tax_rate_percent": "10",
            "line_items": [
                {"product_id": sample_product.id, "quantity": 3},
                {"product_name": "Setup fee", "quantity": 1, "unit_price": "50"}
            ]
        })
        assert response.status_code == 201
        data = response.json()

        assert data["quotation_number"] == "QUO-2026-0001"
        assert data["status"] == "draft"
        assert Decimal(data["subtotal"]) == Decimal("230.00")
        assert Decimal(data["discount_amount"]) == Decimal("20.00")
        assert Decimal(data["tax_amount"]) == Decimal("21.00")
        assert Decimal(data["total_amount"]) == Decimal("231.00")
        assert data["currency"] == "USD"

    def test_valid_until_before_quotation_date(self, api_client, sample_client):
        response = api_client.post("/quotations/", json={
            "client_id": sample_client.id,
            "quotation_date": "2026-02-10",
            "valid_until_date": "2026-02-01",
            "line_items": [{"product_name": "X", "quantity": 1, "unit_price": "1"}]
        })
        assert response.status_code == 422

    def test_empty_line_items(self, api_client, sample_client):
        response = api_client.post("/quotations/", json={
            "client_id": sample_client.id,
            "valid_until_date": "2030-01-01",
            "line_items": []
        })
        assert response.status_code == 422

    def test_fixed_discount_above_subtotal(self, api_client, sample_client):
        response = api_client.post("/quotations/", json={
            "client_id": sample_client.id,
            "valid_until_date": "2030-01-01",
            "discount_type": "fixed",
            "discount_value": "500",
            "line_items": [{"product_name": "X", "quantity": 1, "unit_price": "100"}]
        })
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_convert_endpoint(self, api_client, sample_client):
        quotation = api_client.post("/quotations/", json={
            "client_id": sample_client.id,
            "valid_until_date": "2030-01-01",
            "status": "sent",
            "line_items": [{"product_name": "Build", "quantity": 1, "unit_price": "100"}]
        }).json()
        api_client.patch(f"/quotations/{quotation['id']}", json={"status": "accepted"})

        response = api_client.post(f"/quotations/{quotation['id']}/convert", json={"status": "sent"})
        assert response.status_code == 201
        assert response.json()["quotation_id"] == quotation["id"]
        assert api_client.get(f"/quotations/{quotation['id']}").json()["status"] == "converted"


# ===== TESTS DE SERVICIO =====

class TestQuotationService:

    def test_totals_with_discount(self, service, sample_client):
        """200 - 10% = 180, +5% = 189"""
        quotation = create(service, sample_client.id)

        assert quotation.quotation_number == "QUO-2026-0001"
        assert quotation.subtotal == Decimal("200.00")
        assert quotation.discount_amount == Decimal("20.00")
        assert quotation.tax_amount == Decimal("9.00")
        assert quotation.total_amount == Decimal("189.00")

    def test_lifecycle(self, service, sample_client):
        quotation = create(service, sample_client.id)
        for status in (QuotationStatus.SENT, QuotationStatus.ACCEPTED):
            quotation = service.update_quotation(quotation.id, QuotationUpdate(status=status))
        assert quotation.status == QuotationStatus.ACCEPTED

    def test_sent_cannot_return_to_draft(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent")
        with pytest.raises(InvalidTransitionError):
            service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.DRAFT))

    def test_draft_to_draft_is_a_no_op(self, service, sample_client):
        quotation = create(service, sample_client.id)
        updated = service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.DRAFT))
        assert updated.status == QuotationStatus.DRAFT

    def test_converted_only_through_conversion(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))
        with pytest.raises(InvalidTransitionError):
            service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.CONVERTED))

    def test_edit_recomputes(self, service, sample_client):
        quotation = create(service, sample_client.id)
        updated = service.update_quotation(quotation.id, QuotationUpdate(
            discount_type="fixed",
            discount_value=Decimal("0"),
            line_items=[{"product_name": "Discovery workshop", "quantity": 2, "unit_price": "200"}]
        ))

        assert updated.subtotal == Decimal("400.00")
        assert updated.discount_amount == Decimal("0.00")
        assert updated.total_amount == Decimal("420.00")

    def test_accepted_quotation_cannot_be_edited(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))
        with pytest.raises(ValidationError):
            service.update_quotation(quotation.id, QuotationUpdate(notes="late change"))

    def test_stale_version(self, service, sample_client):
        quotation = create(service, sample_client.id)
        service.update_quotation(quotation.id, QuotationUpdate(notes="v2", version=1))
        with pytest.raises(ConflictError):
            service.update_quotation(quotation.id, QuotationUpdate(notes="v3", version=1))

    def test_convert_to_invoice(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent", discount_value="0")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))

        invoice = service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

        assert invoice.invoice_number == "INV-0001"
        assert invoice.quotation_id == quotation.id
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.client_name == "Acme Logistics"
        assert invoice.total_amount == Decimal("210.00")
        assert invoice.due_date == TODAY + timedelta(days=30)
        assert service.get_quotation(quotation.id).status == QuotationStatus.CONVERTED

        with pytest.raises(InvalidTransitionError):
            service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

    def test_convert_requires_accepted(self, service, sample_client):
        quotation = create(service, sample_client.id, discount_value="0")
        with pytest.raises(InvalidTransitionError):
            service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

    def test_convert_with_discount_is_rejected(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))
        with pytest.raises(ValidationError):
            service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

    def test_converted_quotation_cannot_be_deleted(self, service, sample_client):
        quotation = create(service, sample_client.id, status="sent", discount_value="0")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))
        service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

        with pytest.raises(ValidationError):
            service.delete_quotation(quotation.id)

    def test_converted_invoice_cannot_be_deleted(self, service, sample_client, db_session):
        from billdesk.modules.invoices.service import InvoiceService

        quotation = create(service, sample_client.id, status="sent", discount_value="0")
        service.update_quotation(quotation.id, QuotationUpdate(status=QuotationStatus.ACCEPTED))
        invoice = service.convert_to_invoice(quotation.id, QuotationConvert(), 1)

        with pytest.raises(ValidationError):
            InvoiceService(db_session, today=fixed_today).delete_invoice(invoice.id)

        assert service.get_quotation(quotation.id).status == QuotationStatus.CONVERTED
        assert InvoiceService(db_session).get_invoice(invoice.id).quotation_id == quotation.id
