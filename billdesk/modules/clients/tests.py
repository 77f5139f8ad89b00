"""
Tests para el módulo de Clientes

Cubren el código CLT correlativo, unicidad de email, filtros y la
protección contra borrar clientes con documentos.
"""

from datetime import date, timedelta

import pytest

from billdesk.common.exceptions import ConflictError, ValidationError
from billdesk.modules.clients.schemas import ClientCreate
from billdesk.modules.clients.service import ClientService
from billdesk.modules.invoices.schemas import InvoiceCreate
from billdesk.modules.invoices.service import InvoiceService


@pytest.fixture
def client_payload():
    return {
        "business_name": "Initech",
        "contact_person": "Bill Lumbergh",
        "email": "accounts@initech.com",
        "payment_terms": "net_15"
    }


class TestClientAPI:

    def test_create_client(self, api_client, client_payload):
        response = api_client.post("/clients/", json=client_payload)
        assert response.status_code == 201
        data = response.json()

        assert data["client_code"] == "CLT0001"
        assert data["payment_schedule"] == "monthly"
        assert data["payment_terms"] == "net_15"
        assert data["status"] is True
        assert data["created_by"] == 1

    def test_codes_come_from_the_counter(self, api_client, client_payload):
        first = api_client.post("/clients/", json=client_payload).json()
        api_client.delete(f"/clients/{first['id']}")

        client_payload["email"] = "second@initech.com"
        second = api_client.post("/clients/", json=client_payload).json()
        # Deleting a client never hands its code out again
        assert second["client_code"] == "CLT0002"

    def test_duplicate_email(self, api_client, client_payload):
        api_client.post("/clients/", json=client_payload)
        response = api_client.post("/clients/", json=client_payload)
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_invalid_email(self, api_client, client_payload):
        client_payload["email"] = "not-an-email"
        assert api_client.post("/clients/", json=client_payload).status_code == 422

    def test_client_code_is_not_writable(self, api_client, client_payload):
        client = api_client.post("/clients/", json=client_payload).json()
        response = api_client.patch(f"/clients/{client['id']}", json={"client_code": "CLT9999"})
        assert response.status_code == 422

    def test_list_and_filter(self, api_client, client_payload):
        api_client.post("/clients/", json=client_payload)
        api_client.post("/clients/", json={**client_payload, "business_name": "Hooli", "email": "ap@hooli.com", "status": False})

        assert api_client.get("/clients/").json()["total"] == 2
        assert api_client.get("/clients/", params={"search": "hooli"}).json()["total"] == 1
        active = api_client.get("/clients/", params={"status": "true"}).json()
        assert [c["business_name"] for c in active["items"]] == ["Initech"]

    def test_get_missing_client(self, api_client):
        response = api_client.get("/clients/404")
        assert response.status_code == 404
        assert response.json() == {"detail": "Client 404 not found", "code": "NOT_FOUND"}


class TestClientService:

    def test_referenced_client_cannot_be_deleted(self, db_session, sample_client):
        InvoiceService(db_session).create_invoice(InvoiceCreate(
            client_id=sample_client.id,
            due_date=date.today() + timedelta(days=30),
            line_items=[{"product_name": "Hosting", "quantity": 1, "unit_price": "10"}]
        ), 1)

        with pytest.raises(ValidationError):
            ClientService(db_session).delete_client(sample_client.id)

    def test_update_client(self, db_session, sample_client):
        from billdesk.modules.clients.schemas import ClientUpdate
        updated = ClientService(db_session).update_client(sample_client.id, ClientUpdate(city="Shelbyville"))
        assert updated.city == "Shelbyville"
        assert updated.business_name == "Acme Logistics"

    def test_duplicate_email_in_service(self, db_session, sample_client):
        with pytest.raises(ConflictError):
            ClientService(db_session).create_client(
                ClientCreate(business_name="Other", email=sample_client.email), 1
            )
