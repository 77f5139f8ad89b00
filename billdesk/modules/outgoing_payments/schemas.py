from pydantic import BaseModel, ConfigDict, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from billdesk.modules.outgoing_payments.models import (
    CategoryStatus, OutgoingPaymentMethod, OutgoingPaymentStatus, PaymentCategory
)

# Payee reference required by each payment category
PAYEE_FIELDS = {
    PaymentCategory.EXPENSE: "expense_category_id",
    PaymentCategory.STAFF_SALARY: "staff_id",
    PaymentCategory.SUBSCRIPTION: "product_id",
    PaymentCategory.OTHER: "payee_name",
}


def payee_error(category: PaymentCategory, values: dict) -> Optional[str]:
    """Mensaje de error si la referencia del beneficiario no cuadra con la categoría"""
    expected = PAYEE_FIELDS[category]
    present = [field for field in PAYEE_FIELDS.values() if values.get(field) not in (None, "")]
    if present != [expected]:
        return (
            f"A '{category.value}' payment needs exactly one payee reference, {expected} "
            f"(got: {', '.join(present) or 'none'})"
        )
    return None


class ExpenseCategoryCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    status: CategoryStatus = CategoryStatus.ACTIVE


class ExpenseCategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    status: CategoryStatus
    created_by: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OutgoingPaymentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_category: PaymentCategory
    expense_category_id: Optional[int] = None
    staff_id: Optional[int] = None
    product_id: Optional[int] = None
    payee_name: Optional[str] = Field(None, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: Optional[date] = None
    payment_method: OutgoingPaymentMethod = OutgoingPaymentMethod.BANK_TRANSFER
    reference_number: Optional[str] = Field(None, max_length=100)
    status: OutgoingPaymentStatus = OutgoingPaymentStatus.SCHEDULED
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_payee(self):
        error = payee_error(self.payment_category, self.model_dump())
        if error:
            raise ValueError(error)
        return self


class OutgoingPaymentUpdate(BaseModel):
    """Parche parcial; la coherencia categoría/beneficiario se valida tras aplicar el cambio"""
    model_config = ConfigDict(extra="forbid")

    payment_category: Optional[PaymentCategory] = None
    expense_category_id: Optional[int] = None
    staff_id: Optional[int] = None
    product_id: Optional[int] = None
    payee_name: Optional[str] = Field(None, max_length=200)
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    payment_date: Optional[date] = None
    payment_method: Optional[OutgoingPaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    status: Optional[OutgoingPaymentStatus] = None
    notes: Optional[str] = None
    version: Optional[int] = None


class OutgoingPaymentOut(BaseModel):
    id: int
    payment_number: str
    payment_category: PaymentCategory
    expense_category_id: Optional[int]
    staff_id: Optional[int]
    product_id: Optional[int]
    payee_name: Optional[str]
    amount: Decimal
    payment_date: date
    payment_method: OutgoingPaymentMethod
    reference_number: Optional[str]
    status: OutgoingPaymentStatus
    notes: Optional[str]
    version: int
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OutgoingPaymentList(BaseModel):
    items: List[OutgoingPaymentOut]
    total: int
    page: int
    limit: int
