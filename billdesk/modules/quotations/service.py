from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, desc
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from billdesk.common.exceptions import (
    ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.core.config import settings
from billdesk.modules.invoices.models import Invoice, InvoiceLineItem
from billdesk.modules.ledger.calculator import ZERO
from billdesk.modules.ledger.numbering import NumberingService
from billdesk.modules.ledger.reconciler import LedgerReconciler
from billdesk.modules.ledger.references import ReferenceResolver, ResolvedLine
from billdesk.modules.ledger.schemas import DocumentType
from billdesk.modules.ledger.status import INVOICE_MACHINE, QUOTATION_MACHINE
from billdesk.modules.quotations.models import Quotation, QuotationLineItem, QuotationStatus
from billdesk.modules.quotations.schemas import QuotationConvert, QuotationCreate, QuotationUpdate

logger = logging.getLogger(__name__)

# Content can only change before the client answers
EDITABLE_STATUSES = (QuotationStatus.DRAFT, QuotationStatus.SENT)
NULLABLE_FIELDS = {"terms_and_conditions", "notes"}
DEFAULT_PAYMENT_DAYS = 30


def build_quotation_lines(lines: List[ResolvedLine]) -> List[QuotationLineItem]:
    return [
        QuotationLineItem(
            product_id=line.product_id,
            product_name=line.product_name,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            amount=line.amount
        )
        for line in lines
    ]


class QuotationService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.numbering = NumberingService(db, today=today)
        self.resolver = ReferenceResolver(db)
        self.reconciler = LedgerReconciler(db, today=today)

    def create_quotation(self, quotation_data: QuotationCreate, user_id: int) -> Quotation:
        """Crear cotización con número QUO-{año}-{secuencia}"""
        QUOTATION_MACHINE.ensure_initial(quotation_data.status)
        quotation_date = quotation_data.quotation_date or self.today()
        if quotation_data.valid_until_date < quotation_date:
            raise ValidationError("valid_until_date cannot be before quotation_date")

        with unit_of_work(self.db, "creating quotation"):
            client = self.resolver.resolve_client(quotation_data.client_id)
            lines = self.resolver.resolve_line_items(quotation_data.line_items)

            def build(number: str) -> Quotation:
                quotation = Quotation(
                    quotation_number=number,
                    client=client,
                    quotation_date=quotation_date,
                    valid_until_date=quotation_data.valid_until_date,
                    discount_type=quotation_data.discount_type,
                    discount_value=quotation_data.discount_value,
                    tax_rate_percent=quotation_data.tax_rate_percent,
                    status=quotation_data.status,
                    currency=quotation_data.currency or settings.DEFAULT_CURRENCY,
                    terms_and_conditions=quotation_data.terms_and_conditions,
                    notes=quotation_data.notes,
                    created_by=user_id,
                    line_items=build_quotation_lines(lines)
                )
                self.reconciler.recompute(quotation)
                self.db.add(quotation)
                return quotation

            quotation = self.numbering.create_with_number(DocumentType.QUOTATION, build, on_date=quotation_date)

        self.db.refresh(quotation)
        logger.info(
            f"Quotation {quotation.quotation_number} created for client {quotation.client_id}: "
            f"total {quotation.total_amount}"
        )
        return quotation

    def get_quotation(self, quotation_id: int) -> Quotation:
        quotation = self.db.query(Quotation).options(
            selectinload(Quotation.line_items)
        ).filter(Quotation.id == quotation_id).first()

        if not quotation:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    def list_quotations(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[QuotationStatus] = None,
        client_id: Optional[int] = None,
        search: Optional[str] = None
    ) -> dict:
        query = self.db.query(Quotation).options(selectinload(Quotation.line_items))
        if status:
            query = query.filter(Quotation.status == status)
        if client_id:
            query = query.filter(Quotation.client_id == client_id)
        if search:
            query = query.filter(or_(
                Quotation.quotation_number.ilike(f"%{search}%"),
                Quotation.client_name.ilike(f"%{search}%")
            ))

        return paginate(query.order_by(desc(Quotation.id)), page, limit)

    def update_quotation(self, quotation_id: int, quotation_update: QuotationUpdate) -> Quotation:
        """
        Actualizar cotización.

        El contenido se edita solo en draft o sent; totales se recalculan en
        cada edición. 'converted' solo se alcanza con convert_to_invoice.
        """
        fields = quotation_update.model_fields_set - {"version", "status", "line_items", "client_id"}
        changes = {
            field: getattr(quotation_update, field)
            for field in fields
            if getattr(quotation_update, field) is not None or field in NULLABLE_FIELDS
        }
        requested = quotation_update.status

        with unit_of_work(self.db, "updating quotation"):
            quotation = self.get_quotation(quotation_id)
            if quotation_update.version is not None and quotation_update.version != quotation.version:
                raise ConflictError(
                    f"Quotation {quotation.quotation_number} is at version {quotation.version}, "
                    f"not {quotation_update.version}; reload and retry"
                )

            if requested is not None and requested != quotation.status:
                if requested == QuotationStatus.CONVERTED:
                    raise InvalidTransitionError("quotation", quotation.status.value, requested.value)
                QUOTATION_MACHINE.ensure_transition(quotation.status, requested)

            new_client = quotation_update.client_id is not None and quotation_update.client_id != quotation.client_id
            content_change = bool(changes) or quotation_update.line_items is not None or new_client
            if content_change and quotation.status not in EDITABLE_STATUSES:
                raise ValidationError(
                    f"Quotation {quotation.quotation_number} is {quotation.status.value} and can no longer be edited"
                )

            if new_client:
                quotation.client = self.resolver.resolve_client(quotation_update.client_id)
            if quotation_update.line_items is not None:
                quotation.line_items = build_quotation_lines(
                    self.resolver.resolve_line_items(quotation_update.line_items)
                )
            for field, value in changes.items():
                setattr(quotation, field, value)

            if quotation.valid_until_date < quotation.quotation_date:
                raise ValidationError("valid_until_date cannot be before quotation_date")

            self.reconciler.recompute(quotation)

            if requested is not None and requested != quotation.status:
                logger.info(
                    f"Quotation {quotation.quotation_number} status changed from "
                    f"{quotation.status.value} to {requested.value}"
                )
                quotation.status = requested

        self.db.refresh(quotation)
        return quotation

    def delete_quotation(self, quotation_id: int) -> None:
        with unit_of_work(self.db, "deleting quotation"):
            quotation = self.get_quotation(quotation_id)
            if quotation.status == QuotationStatus.CONVERTED:
                raise ValidationError(
                    f"Quotation {quotation.quotation_number} was converted to an invoice and cannot be deleted"
                )
            self.db.delete(quotation)

        logger.info(f"Quotation {quotation_id} deleted")

    def convert_to_invoice(self, quotation_id: int, convert_data: QuotationConvert, user_id: int) -> Invoice:
        """
        Convertir una cotización aceptada en factura.

        La factura copia snapshot del cliente, líneas e impuesto. La cotización
        pasa a 'converted' en la misma transacción.
        """
        INVOICE_MACHINE.ensure_initial(convert_data.status)

        with unit_of_work(self.db, "converting quotation"):
            quotation = self.get_quotation(quotation_id)
            QUOTATION_MACHINE.ensure_transition(quotation.status, QuotationStatus.CONVERTED)
            if quotation.status == QuotationStatus.CONVERTED:
                raise InvalidTransitionError("quotation", quotation.status.value, QuotationStatus.CONVERTED.value)
            if quotation.discount_amount and Decimal(quotation.discount_amount) > ZERO:
                raise ValidationError(
                    f"Quotation {quotation.quotation_number} carries a discount of {quotation.discount_amount}; "
                    "invoices have no discount, adjust the line prices first"
                )

            issue_date = convert_data.issue_date or self.today()
            due_date = convert_data.due_date or issue_date + timedelta(days=DEFAULT_PAYMENT_DAYS)
            if due_date < issue_date:
                raise ValidationError("due_date cannot be before issue_date")

            def build(number: str) -> Invoice:
                # Reloaded on every attempt: a number collision rolls everything back
                source = self.get_quotation(quotation_id)
                source.status = QuotationStatus.CONVERTED
                invoice = Invoice(
                    invoice_number=number,
                    client=source.client,
                    quotation_id=source.id,
                    issue_date=issue_date,
                    due_date=due_date,
                    tax_rate_percent=source.tax_rate_percent,
                    amount_paid=Decimal("0.00"),
                    status=convert_data.status,
                    payment_terms=convert_data.payment_terms,
                    payment_instructions=convert_data.payment_instructions,
                    notes=source.notes,
                    created_by=user_id,
                    line_items=[
                        InvoiceLineItem(
                            product_id=item.product_id,
                            product_name=item.product_name,
                            description=item.description,
                            quantity=item.quantity,
                            unit_price=item.unit_price,
                            amount=item.amount
                        )
                        for item in source.line_items
                    ]
                )
                self.reconciler.recompute(invoice)
                self.db.add(invoice)
                return invoice

            invoice = self.numbering.create_with_number(DocumentType.INVOICE, build, on_date=issue_date)

        self.db.refresh(invoice)
        logger.info(f"Quotation {quotation_id} converted into invoice {invoice.invoice_number}")
        invoice.is_overdue = self.reconciler.is_overdue(invoice)
        invoice.effective_status = self.reconciler.effective_status(invoice)
        return invoice
