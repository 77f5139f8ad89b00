from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_, or_, desc
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from billdesk.common.exceptions import ConflictError, NotFoundError, ValidationError
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.modules.invoices.models import Invoice, InvoiceLineItem, InvoicePayment, InvoiceStatus
from billdesk.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, PaymentCreate
from billdesk.modules.ledger.calculator import to_money
from billdesk.modules.ledger.numbering import NumberingService
from billdesk.modules.ledger.reconciler import LedgerReconciler
from billdesk.modules.ledger.references import ReferenceResolver, ResolvedLine
from billdesk.modules.ledger.schemas import DocumentType
from billdesk.modules.ledger.status import INVOICE_MACHINE, OVERDUE_ELIGIBLE

logger = logging.getLogger(__name__)

# Columns a patch may set to NULL explicitly
NULLABLE_FIELDS = {"payment_terms", "payment_instructions", "notes"}


def build_invoice_lines(lines: List[ResolvedLine]) -> List[InvoiceLineItem]:
    return [
        InvoiceLineItem(
            product_id=line.product_id,
            product_name=line.product_name,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            amount=line.amount
        )
        for line in lines
    ]


class InvoiceService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.numbering = NumberingService(db, today=today)
        self.resolver = ReferenceResolver(db)
        self.reconciler = LedgerReconciler(db, today=today)

    def _decorate(self, invoice: Invoice) -> Invoice:
        """Adjuntar los campos derivados al leer (vencimiento)"""
        invoice.is_overdue = self.reconciler.is_overdue(invoice)
        invoice.effective_status = self.reconciler.effective_status(invoice)
        return invoice

    def create_invoice(self, invoice_data: InvoiceCreate, user_id: int) -> Invoice:
        """
        Crear factura.

        Snapshot del cliente y de los productos, totales, número y escritura
        ocurren en una sola transacción.
        """
        INVOICE_MACHINE.ensure_initial(invoice_data.status)
        issue_date = invoice_data.issue_date or self.today()
        if invoice_data.due_date < issue_date:
            raise ValidationError("due_date cannot be before issue_date")

        with unit_of_work(self.db, "creating invoice"):
            client = self.resolver.resolve_client(invoice_data.client_id)
            lines = self.resolver.resolve_line_items(invoice_data.line_items)

            def build(number: str) -> Invoice:
                invoice = Invoice(
                    invoice_number=number,
                    client=client,
                    issue_date=issue_date,
                    due_date=invoice_data.due_date,
                    tax_rate_percent=invoice_data.tax_rate_percent,
                    amount_paid=Decimal("0.00"),
                    status=invoice_data.status,
                    payment_terms=invoice_data.payment_terms,
                    payment_instructions=invoice_data.payment_instructions,
                    notes=invoice_data.notes,
                    created_by=user_id,
                    line_items=build_invoice_lines(lines)
                )
                self.reconciler.recompute(invoice)
                self.db.add(invoice)
                return invoice

            invoice = self.numbering.create_with_number(DocumentType.INVOICE, build, on_date=issue_date)

        self.db.refresh(invoice)
        logger.info(
            f"Invoice {invoice.invoice_number} created for client {invoice.client_id}: "
            f"total {invoice.total_amount}, status {invoice.status.value}"
        )
        return self._decorate(invoice)

    def _load(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).options(
            selectinload(Invoice.line_items),
            selectinload(Invoice.payments)
        ).filter(Invoice.id == invoice_id).first()

        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def get_invoice(self, invoice_id: int) -> Invoice:
        """Obtener factura con líneas y pagos"""
        return self._decorate(self._load(invoice_id))

    def list_invoices(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[int] = None,
        overdue: Optional[bool] = None,
        search: Optional[str] = None
    ) -> dict:
        """
        Listar facturas.

        ``status`` filtra por el estado almacenado; ``overdue`` por el estado
        derivado a la fecha de hoy.
        """
        query = self.db.query(Invoice).options(selectinload(Invoice.line_items))

        if status:
            query = query.filter(Invoice.status == status)
        if client_id:
            query = query.filter(Invoice.client_id == client_id)
        if search:
            query = query.filter(or_(
                Invoice.invoice_number.ilike(f"%{search}%"),
                Invoice.client_name.ilike(f"%{search}%")
            ))

        overdue_clause = and_(
            Invoice.status.in_([InvoiceStatus(s) for s in OVERDUE_ELIGIBLE]),
            Invoice.balance_due > 0,
            Invoice.due_date < self.today()
        )
        if overdue is True:
            query = query.filter(overdue_clause)
        elif overdue is False:
            query = query.filter(~overdue_clause)

        result = paginate(query.order_by(desc(Invoice.id)), page, limit)
        result["items"] = [self._decorate(invoice) for invoice in result["items"]]
        return result

    def update_invoice(self, invoice_id: int, invoice_update: InvoiceUpdate, user_id: int) -> Invoice:
        """
        Actualizar factura.

        Cambios de contenido mientras la factura siga abierta. Cualquier cambio en
        líneas o impuesto recalcula totales y saldo; si el nuevo total queda
        por debajo de lo ya pagado se rechaza sin escribir nada.
        """
        fields = invoice_update.model_fields_set - {"version", "status", "amount_paid", "line_items", "client_id"}
        changes = {
            field: getattr(invoice_update, field)
            for field in fields
            if getattr(invoice_update, field) is not None or field in NULLABLE_FIELDS
        }

        with unit_of_work(self.db, "updating invoice"):
            invoice = self._load(invoice_id)
            if invoice_update.version is not None and invoice_update.version != invoice.version:
                raise ConflictError(
                    f"Invoice {invoice.invoice_number} is at version {invoice.version}, "
                    f"not {invoice_update.version}; reload and retry"
                )

            content_change = bool(changes) or invoice_update.line_items is not None or (
                invoice_update.client_id is not None and invoice_update.client_id != invoice.client_id
            )
            if content_change and INVOICE_MACHINE.is_terminal(invoice.status):
                raise ValidationError(
                    f"Invoice {invoice.invoice_number} is {invoice.status.value} and can no longer be edited"
                )

            if invoice_update.client_id is not None and invoice_update.client_id != invoice.client_id:
                invoice.client = self.resolver.resolve_client(invoice_update.client_id)
            if invoice_update.line_items is not None:
                invoice.line_items = build_invoice_lines(
                    self.resolver.resolve_line_items(invoice_update.line_items)
                )
            for field, value in changes.items():
                setattr(invoice, field, value)

            if invoice.due_date < invoice.issue_date:
                raise ValidationError("due_date cannot be before issue_date")

            self.reconciler.recompute(invoice)

            requested = invoice_update.status
            if requested is not None and requested != invoice.status and requested != InvoiceStatus.PAID:
                self._change_status(invoice, requested)

            if invoice_update.amount_paid is not None:
                delta = to_money(invoice_update.amount_paid) - to_money(invoice.amount_paid)
                if delta:
                    self.reconciler.apply_payment(invoice, delta, user_id)

            # Marking paid needs the balance settled first
            if requested == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID:
                self._change_status(invoice, requested)

        self.db.refresh(invoice)
        return self._decorate(invoice)

    def _change_status(self, invoice: Invoice, requested: InvoiceStatus) -> None:
        old_status = invoice.status
        self.reconciler.ensure_status_change(invoice, requested)
        invoice.status = requested
        logger.info(
            f"Invoice {invoice.invoice_number} status changed from {old_status.value} to {requested.value}"
        )

    def delete_invoice(self, invoice_id: int) -> None:
        """
        Solo se eliminan facturas sin pagos y que no vienen de una cotización.

        Una factura convertida se anula en lugar de borrarse: la cotización
        quedó en 'converted' y no puede volver atrás.
        """
        with unit_of_work(self.db, "deleting invoice"):
            invoice = self._load(invoice_id)
            if invoice.payments or to_money(invoice.amount_paid) > 0:
                raise ValidationError(
                    f"Invoice {invoice.invoice_number} has payments recorded; cancel it instead"
                )
            if invoice.quotation_id is not None:
                raise ValidationError(
                    f"Invoice {invoice.invoice_number} was converted from quotation {invoice.quotation_id}; cancel it instead"
                )
            self.db.delete(invoice)

        logger.info(f"Invoice {invoice_id} deleted")

    def record_payment(self, invoice_id: int, payment_data: PaymentCreate, user_id: int) -> InvoicePayment:
        """
        Registrar un pago.

        Permite pagos parciales. Cuando el saldo llega a cero la factura pasa
        automáticamente a 'paid'.
        """
        with unit_of_work(self.db, "recording payment"):
            invoice = self._load(invoice_id)
            payment = self.reconciler.apply_payment(
                invoice,
                payment_data.amount,
                user_id,
                method=payment_data.method,
                reference=payment_data.reference,
                payment_date=payment_data.payment_date,
                notes=payment_data.notes
            )

        self.db.refresh(payment)
        return payment

    def get_payments(self, invoice_id: int) -> List[InvoicePayment]:
        invoice = self._load(invoice_id)
        return list(invoice.payments)
