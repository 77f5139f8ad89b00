"""
Tests para el módulo de Personal
"""

from decimal import Decimal

import pytest

from billdesk.common.exceptions import ValidationError
from billdesk.modules.outgoing_payments.schemas import OutgoingPaymentCreate
from billdesk.modules.outgoing_payments.service import OutgoingPaymentService
from billdesk.modules.staff.service import StaffService


class TestStaffAPI:

    def test_create_and_filter(self, api_client):
        response = api_client.post("/staff/", json={
            "name": "Robin Park",
            "email": "robin.park@billdesk.com",
            "position": "Designer",
            "payment_rate": "38.50",
            "payment_frequency": "hourly"
        })
        assert response.status_code == 201
        assert response.json()["status"] == "active"

        assert api_client.get("/staff/", params={"search": "robin"}).json()["total"] == 1

    def test_negative_rate(self, api_client):
        response = api_client.post("/staff/", json={
            "name": "Robin Park", "email": "robin.park@billdesk.com", "position": "Designer", "payment_rate": "-1"
        })
        assert response.status_code == 422

    def test_delete_member(self, api_client, sample_staff):
        assert api_client.delete(f"/staff/{sample_staff.id}").status_code == 204
        assert api_client.get(f"/staff/{sample_staff.id}").status_code == 404


class TestStaffService:

    def test_member_with_salary_payments_cannot_be_deleted(self, db_session, sample_staff):
        OutgoingPaymentService(db_session).record_payment(OutgoingPaymentCreate(
            payment_category="staff_salary", staff_id=sample_staff.id, amount=Decimal("2500")
        ), 1)

        with pytest.raises(ValidationError):
            StaffService(db_session).delete_staff(sample_staff.id)
