from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from typing import Optional
import logging

from billdesk.common.exceptions import NotFoundError, ValidationError
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.modules.clients.models import Client
from billdesk.modules.clients.schemas import ClientCreate, ClientUpdate
from billdesk.modules.invoices.models import Invoice
from billdesk.modules.ledger.numbering import NumberingService
from billdesk.modules.ledger.schemas import DocumentType
from billdesk.modules.quotations.models import Quotation

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: Session):
        self.db = db
        self.numbering = NumberingService(db)

    def create_client(self, client_data: ClientCreate, user_id: int) -> Client:
        """Crear cliente con código CLT correlativo"""
        def build(client_code: str) -> Client:
            client = Client(client_code=client_code, created_by=user_id, **client_data.model_dump())
            self.db.add(client)
            return client

        with unit_of_work(self.db, "creating client"):
            client = self.numbering.create_with_number(DocumentType.CLIENT, build)

        self.db.refresh(client)
        logger.info(f"Client {client.client_code} created by user {user_id}")
        return client

    def get_client(self, client_id: int) -> Client:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise NotFoundError("Client", client_id)
        return client

    def list_clients(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[bool] = None
    ) -> dict:
        query = self.db.query(Client)
        if search:
            query = query.filter(or_(
                Client.business_name.ilike(f"%{search}%"),
                Client.email.ilike(f"%{search}%"),
                Client.client_code.ilike(f"%{search}%")
            ))
        if status is not None:
            query = query.filter(Client.status == status)

        return paginate(query.order_by(desc(Client.id)), page, limit)

    def update_client(self, client_id: int, client_update: ClientUpdate) -> Client:
        with unit_of_work(self.db, "updating client"):
            client = self.get_client(client_id)
            for field, value in client_update.model_dump(exclude_unset=True).items():
                setattr(client, field, value)

        self.db.refresh(client)
        return client

    def delete_client(self, client_id: int) -> None:
        """
        Eliminar cliente.

        Un cliente referenciado por cotizaciones o facturas no se borra:
        los documentos conservan su snapshot pero la referencia debe existir.
        """
        with unit_of_work(self.db, "deleting client"):
            client = self.get_client(client_id)

            quotations = self.db.query(Quotation.id).filter(Quotation.client_id == client_id).count()
            invoices = self.db.query(Invoice.id).filter(Invoice.client_id == client_id).count()
            if quotations or invoices:
                raise ValidationError(
                    f"Client {client.client_code} is referenced by {quotations} quotation(s) "
                    f"and {invoices} invoice(s); deactivate it instead"
                )

            self.db.delete(client)

        logger.info(f"Client {client_id} deleted")
