from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.outgoing_payments.models import OutgoingPaymentStatus, PaymentCategory
from billdesk.modules.outgoing_payments.schemas import (
    ExpenseCategoryCreate, ExpenseCategoryOut,
    OutgoingPaymentCreate, OutgoingPaymentUpdate, OutgoingPaymentOut, OutgoingPaymentList
)
from billdesk.modules.outgoing_payments.service import OutgoingPaymentService

router = APIRouter(prefix="/outgoing-payments", tags=["Outgoing Payments"])
categories_router = APIRouter(prefix="/expense-categories", tags=["Outgoing Payments"])


@router.post("/", response_model=OutgoingPaymentOut, status_code=status.HTTP_201_CREATED)
def record_outgoing_payment(
    payment_data: OutgoingPaymentCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Registrar un pago saliente

    La categoría determina el beneficiario: expense -> expense_category_id,
    staff_salary -> staff_id, subscription -> product_id, other -> payee_name.
    """
    return OutgoingPaymentService(db).record_payment(payment_data, user_id)


@router.get("/", response_model=OutgoingPaymentList)
def list_outgoing_payments(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[OutgoingPaymentStatus] = Query(None),
    category: Optional[PaymentCategory] = Query(None),
    search: Optional[str] = Query(None, description="Buscar por número, beneficiario o referencia"),
    db: Session = Depends(get_db)
):
    return OutgoingPaymentService(db).list_payments(page, limit, status, category, search)


@router.get("/{payment_id}", response_model=OutgoingPaymentOut)
def get_outgoing_payment(payment_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return OutgoingPaymentService(db).get_payment(payment_id)


@router.patch("/{payment_id}", response_model=OutgoingPaymentOut)
def update_outgoing_payment(
    payment_id: int,
    payment_update: OutgoingPaymentUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return OutgoingPaymentService(db).update_payment(payment_id, payment_update)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_outgoing_payment(payment_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    OutgoingPaymentService(db).delete_payment(payment_id)


@categories_router.post("/", response_model=ExpenseCategoryOut, status_code=status.HTTP_201_CREATED)
def create_expense_category(
    category_data: ExpenseCategoryCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return OutgoingPaymentService(db).create_expense_category(category_data, user_id)


@categories_router.get("/", response_model=List[ExpenseCategoryOut])
def list_expense_categories(user_id: CurrentUserId, db: Session = Depends(get_db)):
    return OutgoingPaymentService(db).list_expense_categories()
