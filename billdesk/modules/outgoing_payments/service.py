from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from datetime import date
from typing import Callable, List, Optional
import logging

from billdesk.common.exceptions import ConflictError, NotFoundError, ValidationError
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.modules.ledger.numbering import NumberingService
from billdesk.modules.ledger.schemas import DocumentType
from billdesk.modules.ledger.status import OUTGOING_PAYMENT_MACHINE
from billdesk.modules.outgoing_payments.models import (
    ExpenseCategory, OutgoingPayment, OutgoingPaymentStatus, PaymentCategory
)
from billdesk.modules.outgoing_payments.schemas import (
    ExpenseCategoryCreate, OutgoingPaymentCreate, OutgoingPaymentUpdate, PAYEE_FIELDS, payee_error
)
from billdesk.modules.products.models import Product
from billdesk.modules.staff.models import Staff

logger = logging.getLogger(__name__)

PAYEE_MODELS = {
    "expense_category_id": (ExpenseCategory, "Expense category"),
    "staff_id": (Staff, "Staff member"),
    "product_id": (Product, "Product"),
}
NULLABLE_FIELDS = {"reference_number", "notes"} | set(PAYEE_FIELDS.values())


class OutgoingPaymentService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.numbering = NumberingService(db, today=today)

    def _ensure_payee_exists(self, category: PaymentCategory, values: dict) -> None:
        field = PAYEE_FIELDS[category]
        if field not in PAYEE_MODELS:
            return
        model, label = PAYEE_MODELS[field]
        payee_id = values[field]
        if not self.db.query(model.id).filter(model.id == payee_id).first():
            raise NotFoundError(label, payee_id)

    def record_payment(self, payment_data: OutgoingPaymentCreate, user_id: int) -> OutgoingPayment:
        """Registrar un pago saliente con número OP-NNNNNN"""
        OUTGOING_PAYMENT_MACHINE.ensure_initial(payment_data.status)
        values = payment_data.model_dump()
        values["payment_date"] = values["payment_date"] or self.today()

        with unit_of_work(self.db, "recording outgoing payment"):
            self._ensure_payee_exists(payment_data.payment_category, values)

            def build(number: str) -> OutgoingPayment:
                payment = OutgoingPayment(payment_number=number, created_by=user_id, **values)
                self.db.add(payment)
                return payment

            payment = self.numbering.create_with_number(DocumentType.OUTGOING_PAYMENT, build)

        self.db.refresh(payment)
        logger.info(
            f"Outgoing payment {payment.payment_number} recorded: {payment.amount} "
            f"({payment.payment_category.value}, {payment.status.value})"
        )
        return payment

    def get_payment(self, payment_id: int) -> OutgoingPayment:
        payment = self.db.query(OutgoingPayment).filter(OutgoingPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Outgoing payment", payment_id)
        return payment

    def list_payments(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[OutgoingPaymentStatus] = None,
        category: Optional[PaymentCategory] = None,
        search: Optional[str] = None
    ) -> dict:
        query = self.db.query(OutgoingPayment)
        if status:
            query = query.filter(OutgoingPayment.status == status)
        if category:
            query = query.filter(OutgoingPayment.payment_category == category)
        if search:
            query = query.filter(or_(
                OutgoingPayment.payment_number.ilike(f"%{search}%"),
                OutgoingPayment.payee_name.ilike(f"%{search}%"),
                OutgoingPayment.reference_number.ilike(f"%{search}%")
            ))

        return paginate(query.order_by(desc(OutgoingPayment.id)), page, limit)

    def update_payment(self, payment_id: int, payment_update: OutgoingPaymentUpdate) -> OutgoingPayment:
        """
        Actualizar pago saliente.

        Los datos solo cambian mientras el pago no está cerrado; el estado
        sigue scheduled -> processing -> paid | failed, con cancelación
        posible antes de pagar.
        """
        fields = payment_update.model_fields_set - {"version", "status"}
        changes = {
            field: getattr(payment_update, field)
            for field in fields
            if getattr(payment_update, field) is not None or field in NULLABLE_FIELDS
        }
        requested = payment_update.status

        with unit_of_work(self.db, "updating outgoing payment"):
            payment = self.get_payment(payment_id)
            if payment_update.version is not None and payment_update.version != payment.version:
                raise ConflictError(
                    f"Outgoing payment {payment.payment_number} is at version {payment.version}, "
                    f"not {payment_update.version}; reload and retry"
                )

            if changes and OUTGOING_PAYMENT_MACHINE.is_terminal(payment.status):
                raise ValidationError(
                    f"Outgoing payment {payment.payment_number} is {payment.status.value} and can no longer be edited"
                )
            if requested is not None:
                OUTGOING_PAYMENT_MACHINE.ensure_transition(payment.status, requested)

            if changes:
                merged = {field: getattr(payment, field) for field in PAYEE_FIELDS.values()}
                merged.update({k: v for k, v in changes.items() if k in merged})
                category = changes.get("payment_category", payment.payment_category)
                error = payee_error(category, merged)
                if error:
                    raise ValidationError(error)
                self._ensure_payee_exists(category, merged)

                for field, value in changes.items():
                    setattr(payment, field, value)

            if requested is not None and requested != payment.status:
                logger.info(
                    f"Outgoing payment {payment.payment_number} status changed from "
                    f"{payment.status.value} to {requested.value}"
                )
                payment.status = requested

        self.db.refresh(payment)
        return payment

    def delete_payment(self, payment_id: int) -> None:
        with unit_of_work(self.db, "deleting outgoing payment"):
            payment = self.get_payment(payment_id)
            if payment.status == OutgoingPaymentStatus.PAID:
                raise ValidationError(f"Outgoing payment {payment.payment_number} is paid and cannot be deleted")
            self.db.delete(payment)

        logger.info(f"Outgoing payment {payment_id} deleted")

    # --- CATEGORÍAS DE GASTO ---

    def create_expense_category(self, category_data: ExpenseCategoryCreate, user_id: int) -> ExpenseCategory:
        with unit_of_work(self.db, "creating expense category"):
            category = ExpenseCategory(created_by=user_id, **category_data.model_dump())
            self.db.add(category)

        self.db.refresh(category)
        return category

    def list_expense_categories(self) -> List[ExpenseCategory]:
        return self.db.query(ExpenseCategory).order_by(ExpenseCategory.name).all()
