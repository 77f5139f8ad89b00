"""
Tests para el módulo de Pagos salientes

Cubren numeración OP, coherencia categoría/beneficiario, ciclo de estados
y edición restringida de pagos cerrados.
"""

from decimal import Decimal

import pytest

from billdesk.common.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from billdesk.modules.outgoing_payments.models import OutgoingPaymentStatus, PaymentCategory
from billdesk.modules.outgoing_payments.schemas import OutgoingPaymentCreate, OutgoingPaymentUpdate
from billdesk.modules.outgoing_payments.service import OutgoingPaymentService


@pytest.fixture
def service(db_session):
    return OutgoingPaymentService(db_session)


class TestOutgoingPaymentAPI:

    def test_salary_payment(self, api_client, sample_staff):
        response = api_client.post("/outgoing-payments/", json={
            "payment_category": "staff_salary",
            "staff_id": sample_staff.id,
            "amount": "3200.00",
            "payment_method": "bank_transfer"
        })
        assert response.status_code == 201
        data = response.json()
        assert data["payment_number"] == "OP-000001"
        assert data["status"] == "scheduled"

    def test_expense_payment_with_category(self, api_client):
        category = api_client.post("/expense-categories/", json={"name": "Office rent"}).json()
        response = api_client.post("/outgoing-payments/", json={
            "payment_category": "expense",
            "expense_category_id": category["id"],
            "amount": "1500"
        })
        assert response.status_code == 201
        assert [c["name"] for c in api_client.get("/expense-categories/").json()] == ["Office rent"]

    @pytest.mark.parametrize("payload", [
        {"payment_category": "staff_salary", "amount": "10"},
        {"payment_category": "other", "amount": "10"},
        {"payment_category": "other", "payee_name": "Landlord", "staff_id": 1, "amount": "10"},
        {"payment_category": "expense", "payee_name": "Landlord", "amount": "10"},
        {"payment_category": "other", "payee_name": "Landlord", "amount": "0"},
    ])
    def test_invalid_payee_or_amount(self, api_client, payload):
        assert api_client.post("/outgoing-payments/", json=payload).status_code == 422

    def test_missing_payee_entity(self, api_client):
        response = api_client.post("/outgoing-payments/", json={
            "payment_category": "staff_salary", "staff_id": 77, "amount": "10"
        })
        assert response.status_code == 404

    def test_search(self, api_client):
        api_client.post("/outgoing-payments/", json={"payment_category": "other", "payee_name": "City Water", "amount": "80"})
        api_client.post("/outgoing-payments/", json={"payment_category": "other", "payee_name": "Power Co", "amount": "120"})

        found = api_client.get("/outgoing-payments/", params={"search": "water"}).json()
        assert [p["payee_name"] for p in found["items"]] == ["City Water"]
        assert api_client.get("/outgoing-payments/", params={"category": "other"}).json()["total"] == 2


class TestOutgoingPaymentService:

    def other(self, service, **overrides):
        data = {"payment_category": "other", "payee_name": "Cleaning service", "amount": Decimal("95.00")}
        data.update(overrides)
        return service.record_payment(OutgoingPaymentCreate(**data), 1)

    def test_lifecycle(self, service):
        payment = self.other(service)
        payment = service.update_payment(payment.id, OutgoingPaymentUpdate(status=OutgoingPaymentStatus.PROCESSING))
        payment = service.update_payment(payment.id, OutgoingPaymentUpdate(status=OutgoingPaymentStatus.PAID))
        assert payment.status == OutgoingPaymentStatus.PAID

        with pytest.raises(InvalidTransitionError):
            service.update_payment(payment.id, OutgoingPaymentUpdate(status=OutgoingPaymentStatus.CANCELLED))

    def test_cannot_start_failed(self, service):
        with pytest.raises(ValidationError):
            self.other(service, status=OutgoingPaymentStatus.FAILED)

    def test_can_be_recorded_as_paid(self, service):
        assert self.other(service, status=OutgoingPaymentStatus.PAID).status == OutgoingPaymentStatus.PAID

    def test_change_category_requires_matching_payee(self, service, sample_staff):
        payment = self.other(service)
        with pytest.raises(ValidationError):
            service.update_payment(payment.id, OutgoingPaymentUpdate(payment_category=PaymentCategory.STAFF_SALARY))

        updated = service.update_payment(payment.id, OutgoingPaymentUpdate(
            payment_category=PaymentCategory.STAFF_SALARY, staff_id=sample_staff.id, payee_name=None
        ))
        assert (updated.staff_id, updated.payee_name) == (sample_staff.id, None)

    def test_closed_payment_cannot_be_edited(self, service):
        payment = self.other(service, status=OutgoingPaymentStatus.PAID)
        with pytest.raises(ValidationError):
            service.update_payment(payment.id, OutgoingPaymentUpdate(amount=Decimal("1")))

    def test_paid_payment_cannot_be_deleted(self, service):
        payment = self.other(service, status=OutgoingPaymentStatus.PAID)
        with pytest.raises(ValidationError):
            service.delete_payment(payment.id)

    def test_get_missing(self, service):
        with pytest.raises(NotFoundError):
            service.get_payment(1)
