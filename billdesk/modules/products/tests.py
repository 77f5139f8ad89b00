"""
Tests para el módulo de Productos

Cambios de precio no alteran documentos existentes; borrar un producto
desvincula sus líneas y se rechaza si es beneficiario de pagos salientes.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billdesk.common.exceptions import ValidationError
from billdesk.modules.invoices.models import Invoice
from billdesk.modules.invoices.schemas import InvoiceCreate
from billdesk.modules.invoices.service import InvoiceService
from billdesk.modules.outgoing_payments.schemas import OutgoingPaymentCreate
from billdesk.modules.outgoing_payments.service import OutgoingPaymentService
from billdesk.modules.products.schemas import ProductUpdate
from billdesk.modules.products.service import ProductService


def invoice_for(db_session, client, product):
    return InvoiceService(db_session).create_invoice(InvoiceCreate(
        client_id=client.id,
        due_date=date.today() + timedelta(days=30),
        line_items=[{"product_id": product.id, "quantity": 2}]
    ), 1)


class TestProductAPI:

    def test_create_product(self, api_client):
        response = api_client.post("/products/", json={
            "name": "Analytics Suite",
            "description": "Yearly licence",
            "category": "software_license",
            "price": "1200.00",
            "sale_price": "999.00"
        })
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "active"
        assert Decimal(data["sale_price"]) == Decimal("999.00")

    def test_required_fields(self, api_client):
        response = api_client.post("/products/", json={"name": "Nameless", "price": "10"})
        assert response.status_code == 422

    def test_filter_by_category(self, api_client, sample_product):
        assert api_client.get("/products/", params={"category": "support_package"}).json()["total"] == 1
        assert api_client.get("/products/", params={"category": "software_license"}).json()["total"] == 0


class TestProductService:

    def test_price_change_does_not_touch_history(self, db_session, sample_client, sample_product):
        invoice = invoice_for(db_session, sample_client, sample_product)
        ProductService(db_session).update_product(sample_product.id, ProductUpdate(price=Decimal("99.00")))

        db_session.expire_all()
        stored = db_session.query(Invoice).filter(Invoice.id == invoice.id).one()
        assert stored.line_items[0].unit_price == Decimal("60.00")
        assert stored.total_amount == Decimal("120.00")

    def test_delete_detaches_line_items(self, db_session, sample_client, sample_product):
        invoice = invoice_for(db_session, sample_client, sample_product)
        ProductService(db_session).delete_product(sample_product.id)

        db_session.expire_all()
        line = db_session.query(Invoice).filter(Invoice.id == invoice.id).one().line_items[0]
        assert line.product_id is None
        assert line.product_name == "Website Maintenance"
        assert line.unit_price == Decimal("60.00")

    def test_delete_rejected_when_payee(self, db_session, sample_product):
        OutgoingPaymentService(db_session).record_payment(OutgoingPaymentCreate(
            payment_category="subscription",
            product_id=sample_product.id,
            amount=Decimal("49.00")
        ), 1)

        with pytest.raises(ValidationError):
            ProductService(db_session).delete_product(sample_product.id)
